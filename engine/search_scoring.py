import math

from engine.audio_format import file_extension, is_audio_extension

MAX_SCORE = 10000

# Calibration values; tuned empirically against real peer results.
TRACK_FIT_POINTS = 2500
MISSING_TRACK_FALLOFF = 5.0
EXTRA_TRACK_FALLOFF = 1.5
AVAILABILITY_POINTS = 2000
UPLOAD_SPEED_POINTS = 1800
UPLOAD_SPEED_SCALE = 1100
QUEUE_POINTS = 1500
QUEUE_DECAY = 0.94
QUEUE_CAP = 40
FREE_SLOT_POINTS = 800
SIZE_POINTS = 300
SIZE_SCALE = 150
MIN_AVAILABILITY_RATIO = 0.5
MIN_TRACK_COVERAGE = 0.5


def clamp_score(value):
    return max(0, min(MAX_SCORE, int(value)))


def count_audio_files(files):
    return sum(1 for item in files if is_audio_extension(file_extension(item.filename, item.extension)))


def availability_ratio(folder):
    if folder.file_count <= 0:
        return 1.0
    return (folder.file_count - folder.locked_file_count) / folder.file_count


def track_fit_points(actual, expected):
    if expected <= 0 or actual <= 0:
        return 0
    diff = actual - expected
    if diff < 0:
        return int(TRACK_FIT_POINTS * math.exp(-(diff ** 2) * MISSING_TRACK_FALLOFF))
    if diff == 0:
        return TRACK_FIT_POINTS
    return int(TRACK_FIT_POINTS * math.exp(-(diff ** 2) * EXTRA_TRACK_FALLOFF))


def upload_speed_points(upload_speed):
    if upload_speed <= 0:
        return 0
    mbps = upload_speed / (1024.0 * 1024.0 / 8.0)
    return min(UPLOAD_SPEED_POINTS, int(math.log10(max(0.1, mbps) + 1) * UPLOAD_SPEED_SCALE))


def queue_points(queue_length):
    return int(math.pow(QUEUE_DECAY, min(max(0, queue_length), QUEUE_CAP)) * QUEUE_POINTS)


def size_points(file_count):
    return min(SIZE_POINTS, int(math.log10(max(1, file_count) + 1) * SIZE_SCALE))


def calculate_priority(folder, expected_track_count=0):
    """Desirability of a candidate folder, in ``[0, MAX_SCORE]``."""
    if folder.locked_file_count >= folder.file_count:
        return 0
    ratio = availability_ratio(folder)
    if ratio <= MIN_AVAILABILITY_RATIO:
        return 0

    actual = 0
    if expected_track_count > 0:
        actual = count_audio_files(folder.available_files)
        if actual <= expected_track_count * MIN_TRACK_COVERAGE:
            return 0

    score = track_fit_points(actual, expected_track_count)
    score += int(ratio ** 2 * AVAILABILITY_POINTS)
    score += upload_speed_points(folder.upload_speed)
    score += queue_points(folder.queue_length)
    score += FREE_SLOT_POINTS if folder.has_free_upload_slot else 0
    score += size_points(folder.file_count)
    return clamp_score(score)
