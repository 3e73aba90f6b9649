import os
import sys
from unittest.mock import patch

import pytest

# Add project root to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app.core.container import global_container
from job_store import IntentJobStore



@pytest.fixture
def job_store():
    store = IntentJobStore()
    with patch.object(global_container, "job_store", store):
        yield store
