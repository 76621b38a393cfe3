import allure
from click.testing import CliRunner

from ytmp3 import __version__
from ytmp3.main import ytmp3

pytestmark = [
    allure.epic("Batch Runtime"),
    allure.feature("Batch CLI"),
]


def test_version():
    assert __version__


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(ytmp3, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_lists_ledger_options():
    result = CliRunner().invoke(ytmp3, ["--help"])
    assert result.exit_code == 0
    assert "--skip-ledger" in result.output
    assert "--thumbnails" in result.output
