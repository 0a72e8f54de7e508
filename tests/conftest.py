import sys
from pathlib import Path

import pytest

# Allow `import reorgmarks` without installing the package.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _block_remote_calls(monkeypatch):
    """Tests must never trigger real provider requests."""

    def _blocked(*_args, **_kwargs):
        raise AssertionError("Remote classifier call attempted during tests")

    import reorgmarks.classify as classify
    import reorgmarks.grouping as grouping

    monkeypatch.setattr(classify, "classify_batch", _blocked)
    monkeypatch.setattr(grouping, "suggest_category_groups", _blocked)


@pytest.fixture
def cfg():
    from reorgmarks.config import Settings

    s = Settings()
    s.api_key = "test-key"
    s.batch_delay_s = 0
    s.retry_delay_s = 0
    return s
