import logging
import pytest
from stackcheck.errors import DescriptorSyntaxError, DuplicateNameError, InterpolationError
from stackcheck.MODELS.service_definition import MountType, PortProtocol, RestartPolicyCondition
from stackcheck.PARSERS.compose_parser import ComposeParser

def test_parse(stack_path):
    parser = ComposeParser(context={})
    descriptor = parser.parse(stack_path)

    assert descriptor.version == '3.2'
    assert list(descriptor.services) == ['app', 'db', 'admin']
    assert list(descriptor.volumes) == ['db', 'export', 'upload']
    assert all(vol.is_default for vol in descriptor.volumes.values())

    app = descriptor.services['app']
    assert app.image == 'jc5x/firefly-iii:latest'
    assert [ref.path for ref in app.env_files] == ['.app.env']
    assert app.depends_on == ['db']
    assert app.ports[0].host_port == 8000
    assert app.ports[0].container_port == 8080
    assert app.named_volumes == ['export', 'upload']
    assert app.volumes[1].target == '/var/www/firefly-iii/storage/upload'
    assert app.restart is None

    db = descriptor.services['db']
    assert db.volumes[0].source == 'db'
    assert db.volumes[0].target == '/var/lib/postgresql/data'
    assert db.volumes[0].type == MountType.VOLUME

    admin = descriptor.services['admin']
    assert admin.restart.condition == RestartPolicyCondition.ALWAYS

def test_unquoted_port_pair_is_not_base60(stack_path):
    descriptor = ComposeParser(context={}).parse(stack_path)
    port = descriptor.services['admin'].ports[0]
    assert port.host_port == 8080
    assert port.container_port == 8080

def test_port_forms():
    content = """
services:
  web:
    image: nginx
    ports:
      - 80
      - "3000"
      - "127.0.0.1:5432:5432"
      - "53:53/udp"
      - "127.0.0.1::9000"
      - target: 443
        published: 8443
"""
    ports = ComposeParser(context={}).parse_from_string(content).services['web'].ports
    assert (ports[0].host_port, ports[0].container_port) == (None, 80)
    assert (ports[1].host_port, ports[1].container_port) == (None, 3000)
    assert ports[2].host_ip == '127.0.0.1'
    assert ports[2].host_port == 5432
    assert ports[3].protocol == PortProtocol.UDP
    assert ports[4].host_ip == '127.0.0.1' and ports[4].host_port is None
    assert (ports[5].host_port, ports[5].container_port) == (8443, 443)

@pytest.mark.parametrize("port", ['"80:99999"', '"abc"', '"8000-8010:80"', '"80/sctp"', '0'])
def test_invalid_port(port):
    content = f"services:\n  web:\n    image: nginx\n    ports:\n      - {port}\n"
    with pytest.raises(DescriptorSyntaxError) as exc:
        ComposeParser(context={}).parse_from_string(content)
    assert exc.value.service == 'web'
    assert exc.value.key == 'ports'

def test_short_volume_syntax():
    content = """
services:
  web:
    image: nginx
    volumes:
      - data:/srv/data:ro
      - ./conf:/etc/nginx/conf.d
      - /var/cache
"""
    mounts = ComposeParser(context={}).parse_from_string(content).services['web'].volumes
    assert mounts[0].source == 'data' and mounts[0].read_only
    assert mounts[0].type == MountType.VOLUME
    assert mounts[1].type == MountType.BIND
    assert mounts[1].source == './conf'
    assert mounts[2].source is None and mounts[2].target == '/var/cache'

def test_unknown_mount_type():
    content = """
services:
  web:
    image: nginx
    volumes:
      - source: data
        target: /data
        type: nfs
"""
    with pytest.raises(DescriptorSyntaxError, match="unknown mount type 'nfs'"):
        ComposeParser(context={}).parse_from_string(content)

def test_mount_requires_target():
    content = "services:\n  web:\n    image: nginx\n    volumes:\n      - source: data\n"
    with pytest.raises(DescriptorSyntaxError, match="requires 'target'"):
        ComposeParser(context={}).parse_from_string(content)

def test_restart_policies():
    content = """
services:
  a:
    image: busybox
    restart: no
  b:
    image: busybox
    restart: on-failure:3
  c:
    image: busybox
    restart: unless-stopped
"""
    services = ComposeParser(context={}).parse_from_string(content).services
    assert services['a'].restart.condition == RestartPolicyCondition.NO
    assert services['b'].restart.condition == RestartPolicyCondition.ON_FAILURE
    assert services['b'].restart.max_retries == 3
    assert str(services['b'].restart) == 'on-failure:3'
    assert services['c'].restart.condition == RestartPolicyCondition.UNLESS_STOPPED

@pytest.mark.parametrize("policy", ['sometimes', 'always:2', 'yes'])
def test_invalid_restart_policy(policy):
    content = f"services:\n  a:\n    image: busybox\n    restart: {policy}\n"
    with pytest.raises(DescriptorSyntaxError) as exc:
        ComposeParser(context={}).parse_from_string(content)
    assert exc.value.key == 'restart'

def test_depends_on_long_form_keeps_order():
    content = """
services:
  web:
    image: nginx
    depends_on:
      cache:
        condition: service_started
      db:
        condition: service_healthy
  cache:
    image: redis
  db:
    image: postgres
"""
    web = ComposeParser(context={}).parse_from_string(content).services['web']
    assert web.depends_on == ['cache', 'db']

def test_env_file_list():
    content = "services:\n  web:\n    image: nginx\n    env_file:\n      - common.env\n      - path: web.env\n"
    web = ComposeParser(context={}).parse_from_string(content).services['web']
    assert [ref.path for ref in web.env_files] == ['common.env', 'web.env']

def test_volume_declarations():
    content = """
services: {}
volumes:
  plain:
  empty: {}
  nulled: ~
  tuned:
    driver: local
    driver_opts:
      type: tmpfs
  shared:
    external: true
"""
    volumes = ComposeParser(context={}).parse_from_string(content).volumes
    assert volumes['plain'].is_default
    assert volumes['empty'].is_default
    assert volumes['nulled'].is_default
    assert volumes['tuned'].driver == 'local'
    assert volumes['tuned'].driver_opts == {'type': 'tmpfs'}
    assert volumes['shared'].external

def test_duplicate_service_name():
    content = """
services:
  db:
    image: postgres
  db:
    image: mysql
"""
    with pytest.raises(DuplicateNameError) as exc:
        ComposeParser(context={}).parse_from_string(content)
    assert exc.value.kind == 'service'
    assert exc.value.name == 'db'
    assert exc.value.code == 'duplicate-service'
    assert exc.value.line == 5

def test_duplicate_volume_name():
    content = "services: {}\nvolumes:\n  data: ~\n  data: ~\n"
    with pytest.raises(DuplicateNameError) as exc:
        ComposeParser(context={}).parse_from_string(content)
    assert exc.value.kind == 'volume'
    assert "volume 'data' is declared more than once" in str(exc.value)

def test_duplicate_key_in_service():
    content = "services:\n  web:\n    image: nginx\n    image: httpd\n"
    with pytest.raises(DescriptorSyntaxError, match="duplicate key"):
        ComposeParser(context={}).parse_from_string(content)

def test_invalid_yaml():
    with pytest.raises(DescriptorSyntaxError, match="Invalid YAML"):
        ComposeParser(context={}).parse_from_string("services: [unclosed\n")

def test_top_level_must_be_mapping():
    with pytest.raises(DescriptorSyntaxError, match="top level must be a mapping"):
        ComposeParser(context={}).parse_from_string("- a\n- b\n")

def test_service_must_be_mapping():
    with pytest.raises(DescriptorSyntaxError) as exc:
        ComposeParser(context={}).parse_from_string("services:\n  web: nginx\n")
    assert exc.value.service == 'web'

def test_empty_document():
    descriptor = ComposeParser(context={}).parse_from_string("")
    assert descriptor.services == {}
    assert descriptor.volumes == {}
    assert descriptor.version is None

def test_unsupported_keys_are_recorded():
    content = "version: '3'\nnetworks: {}\nservices:\n  web:\n    image: nginx\n    command: run\n"
    descriptor = ComposeParser(context={}).parse_from_string(content)
    assert descriptor.unsupported_keys == ['networks']
    assert descriptor.services['web'].unsupported_keys == ['command']

def test_interpolation():
    content = "services:\n  web:\n    image: nginx:${TAG:-stable}\n    ports:\n      - \"${PORT}:80\"\n"
    descriptor = ComposeParser(context={'PORT': '8081'}).parse_from_string(content)
    assert descriptor.services['web'].image == 'nginx:stable'
    assert descriptor.services['web'].ports[0].host_port == 8081

def test_unset_variable_warns(caplog):
    content = "services:\n  web:\n    image: nginx${SUFFIX}\n"
    with caplog.at_level(logging.WARNING):
        descriptor = ComposeParser(context={}).parse_from_string(content)
    assert descriptor.services['web'].image == 'nginx'
    assert "SUFFIX variable is not set" in caplog.text

def test_unset_variable_strict():
    content = "services:\n  web:\n    image: nginx${SUFFIX}\n"
    with pytest.raises(InterpolationError):
        ComposeParser(context={}, strict_interpolation=True).parse_from_string(content)

def test_project_env_file_feeds_interpolation(write_descriptor, tmp_path, monkeypatch):
    monkeypatch.delenv('IMAGE_TAG', raising=False)
    (tmp_path / '.env').write_text("IMAGE_TAG=13\n")
    path = write_descriptor("services:\n  db:\n    image: postgres:${IMAGE_TAG}\n")
    descriptor = ComposeParser().parse(path)
    assert descriptor.services['db'].image == 'postgres:13'

def test_os_environ_overrides_project_env(write_descriptor, tmp_path, monkeypatch):
    monkeypatch.setenv('IMAGE_TAG', '15')
    (tmp_path / '.env').write_text("IMAGE_TAG=13\n")
    path = write_descriptor("services:\n  db:\n    image: postgres:${IMAGE_TAG}\n")
    assert ComposeParser().parse(path).services['db'].image == 'postgres:15'

def test_parse_missing_file():
    with pytest.raises(FileNotFoundError):
        ComposeParser().parse("non_existent_file_12345.yml")

def test_parse_non_utf8_file(tmp_path):
    path = tmp_path / "docker-compose.yml"
    path.write_bytes(b"services:\n  db:\n    image: postgres\xff\n")
    with pytest.raises(DescriptorSyntaxError, match="is not valid UTF-8"):
        ComposeParser(context={}).parse(str(path))

@pytest.mark.parametrize("read_only", ["'false'", "'true'", "1", "yes please"])
def test_mount_read_only_must_be_boolean(read_only):
    content = f"services:\n  web:\n    image: nginx\n    volumes:\n      - source: data\n        target: /data\n        read_only: {read_only}\n"
    with pytest.raises(DescriptorSyntaxError, match="read_only must be true or false") as exc:
        ComposeParser(context={}).parse_from_string(content)
    assert exc.value.service == 'web'
    assert exc.value.key == 'volumes'

def test_mount_read_only_boolean():
    content = """
services:
  web:
    image: nginx
    volumes:
      - source: data
        target: /data
        read_only: true
      - source: logs
        target: /logs
        read_only: false
"""
    mounts = ComposeParser(context={}).parse_from_string(content).services['web'].volumes
    assert [m.read_only for m in mounts] == [True, False]

def test_extension_fields_are_not_unsupported():
    content = """
version: '3'
x-defaults: &defaults
  restart: always
services:
  web:
    <<: *defaults
    image: nginx
    x-owner: platform
"""
    descriptor = ComposeParser(context={}).parse_from_string(content)
    assert descriptor.unsupported_keys == []
    web = descriptor.services['web']
    assert web.unsupported_keys == []
    assert web.restart.condition == RestartPolicyCondition.ALWAYS

def test_nested_default_in_descriptor():
    content = "services:\n  db:\n    image: postgres:${PG_TAG:-${DEFAULT_TAG:-10}}\n"
    descriptor = ComposeParser(context={}).parse_from_string(content)
    assert descriptor.services['db'].image == 'postgres:10'
