import runpy
from pathlib import Path

import pytest


@pytest.mark.book
def test_readme_runs(capsys):
    runpy.run_path(str(Path(__file__).parent.parent / "readme.py"))
    assert "Tuition" in capsys.readouterr().out
