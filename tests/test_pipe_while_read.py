import allure
from click.testing import CliRunner

from pipe_while_read import __version__
from pipe_while_read.main import pipe_while_read

pytestmark = [
    allure.epic("Command Line"),
    allure.feature("Version"),
]


def test_version():
    assert __version__


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(pipe_while_read, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
