import os
import sys

import rapidfuzz
import requests


def get_runtime_info():
    return {
        "app_version": os.environ.get("SLSKD_SEARCH_VERSION", "0.0.0"),
        "python_version": sys.version.split()[0],
        "rapidfuzz_version": rapidfuzz.__version__,
        "requests_version": requests.__version__,
    }
