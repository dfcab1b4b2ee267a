import pytest
import yaml
from click.testing import CliRunner
from stackcheck.CLI.main import cli

def test_cli_help():
    runner = CliRunner()
    result = runner.invoke(cli, ['--help'])
    assert result.exit_code == 0
    assert 'Check the descriptor' in result.output

def test_cli_validate_no_file():
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', 'non_existent.yml', 'validate'])
    assert result.exit_code == 1
    assert 'Error: non_existent.yml not found.' in result.output

def test_cli_validate_ok(stack_path):
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', stack_path, 'validate'])
    assert result.exit_code == 0
    assert 'valid (3 service(s), 3 volume(s), 0 warning(s))' in result.output

def test_cli_validate_missing_volume(stack_text, write_descriptor):
    path = write_descriptor(stack_text.replace("  upload: ~\n", ""))
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', path, 'validate'])
    assert result.exit_code == 1
    assert 'services.app -> volumes.upload' in result.output
    assert 'invalid (1 error(s), 0 warning(s))' in result.output

def test_cli_validate_strict_fails_on_warnings(stack_text, write_descriptor):
    path = write_descriptor(stack_text + "  spare: ~\n")
    runner = CliRunner()
    assert runner.invoke(cli, ['-f', path, 'validate']).exit_code == 0
    result = runner.invoke(cli, ['-f', path, 'validate', '--strict'])
    assert result.exit_code == 1
    assert 'unused-volume' in result.output

def test_cli_validate_syntax_error(write_descriptor):
    path = write_descriptor("services:\n  app:\n    image: a\n  app:\n    image: b\n")
    result = CliRunner().invoke(cli, ['-f', path, 'validate'])
    assert result.exit_code == 1
    assert "service 'app' is declared more than once" in result.output

def test_cli_order(stack_path):
    runner = CliRunner()
    result = runner.invoke(cli, ['-f', stack_path, 'order'])
    assert result.exit_code == 0
    assert result.output.split() == ['db', 'app', 'admin']
    result = runner.invoke(cli, ['-f', stack_path, 'order', '--reverse'])
    assert result.output.split() == ['admin', 'app', 'db']

def test_cli_order_cycle(write_descriptor):
    path = write_descriptor("services:\n  a:\n    image: x\n    depends_on: [b]\n  b:\n    image: x\n    depends_on: [a]\n")
    result = CliRunner().invoke(cli, ['-f', path, 'order'])
    assert result.exit_code == 1
    assert 'Circular dependency detected: a -> b -> a' in result.output

def test_cli_config(stack_path):
    result = CliRunner().invoke(cli, ['-f', stack_path, 'config'])
    assert result.exit_code == 0
    data = yaml.safe_load(result.output)
    assert list(data['services']) == ['app', 'db', 'admin']
    assert data['services']['admin']['ports'] == ['8080:8080']
    assert data['volumes'] == {'db': None, 'export': None, 'upload': None}

def test_cli_summary(stack_path):
    result = CliRunner().invoke(cli, ['-f', stack_path, 'summary'])
    assert result.exit_code == 0
    assert 'STARTUP ORDER' in result.output
    assert 'db -> app -> admin' in result.output

def test_cli_env_file_option(write_descriptor, tmp_path, monkeypatch):
    monkeypatch.delenv('PG_TAG', raising=False)
    env = tmp_path / "release.env"
    env.write_text("PG_TAG=10\n")
    path = write_descriptor("version: '3'\nservices:\n  db:\n    image: postgres:${PG_TAG}\n")
    result = CliRunner().invoke(cli, ['-f', path, '--env-file', str(env), 'config'])
    assert result.exit_code == 0
    assert 'postgres:10' in result.output

def test_cli_missing_env_file(stack_path, tmp_path):
    missing = str(tmp_path / "nope.env")
    result = CliRunner().invoke(cli, ['-f', stack_path, '--env-file', missing, 'validate'])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert f"Error: {missing}: No such file or directory" in result.output

def test_cli_descriptor_not_utf8(tmp_path):
    path = tmp_path / "docker-compose.yml"
    path.write_bytes(b"services:\n  db:\n    image: postgres\xff\xfe\n")
    result = CliRunner().invoke(cli, ['-f', str(path), 'validate'])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "is not valid UTF-8" in result.output

def test_cli_descriptor_is_directory(tmp_path):
    result = CliRunner().invoke(cli, ['-f', str(tmp_path), 'validate'])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert f"Error: {tmp_path}: Is a directory" in result.output

def test_cli_validate_strict_accepts_extension_fields(write_descriptor):
    path = write_descriptor(
        "version: '3.4'\nx-base: &base\n  image: busybox\nservices:\n  a:\n    <<: *base\n    x-note: kept\n")
    result = CliRunner().invoke(cli, ['-f', path, 'validate', '--strict'])
    assert result.exit_code == 0
    assert 'valid (1 service(s), 0 volume(s), 0 warning(s))' in result.output
