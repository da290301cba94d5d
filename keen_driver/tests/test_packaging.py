"""
Test suite for project metadata and the developer script.

Tests:
- Runtime dependencies stay limited to the HTTP stack
- Script-only dependencies live in the scripts extra
- The sample data script documents its setup
"""

import ast
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]


def _requirement_names(requirements):
    return [req.split(">")[0].split("=")[0].split("<")[0].strip().lower() for req in requirements]


@pytest.fixture
def project_metadata():
    """Parsed [project] table from pyproject.toml"""
    tomllib = pytest.importorskip("tomllib")
    with open(ROOT / "pyproject.toml", "rb") as f:
        return tomllib.load(f)["project"]


class TestDependencies:
    """Test declared dependencies"""

    def test_runtime_dependencies(self, project_metadata):
        """Test installing the driver pulls in requests and nothing script-only."""
        names = _requirement_names(project_metadata["dependencies"])

        assert "requests" in names
        assert "python-dotenv" not in names

    def test_dotenv_in_scripts_extra(self, project_metadata):
        """Test python-dotenv is available through the scripts extra."""
        extras = project_metadata["optional-dependencies"]

        assert "python-dotenv" in _requirement_names(extras["scripts"])
        assert "pytest" in _requirement_names(extras["test"])


class TestSampleDataScript:
    """Test the developer script header"""

    def test_script_docstring_explains_setup(self):
        """Test the script says how to configure and run it."""
        source = (ROOT / "scripts" / "generate_sample_data.py").read_text()
        docstring = ast.get_docstring(ast.parse(source))

        assert docstring is not None
        assert ".env" in docstring
        for name in ["KEEN_PROJECT_ID", "KEEN_READ_KEY", "KEEN_WRITE_KEY"]:
            assert name in docstring
        assert "pip install -e .[scripts]" in docstring
