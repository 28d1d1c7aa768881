import yaml
import pytest
from dcb.PARSERS.compose_parser import ComposeParser, TemplateReadError
from dcb.CONVERTERS.to_compose_yaml import ComposeYamlConverter
from dcb.MODELS.service_definition import RestartPolicyCondition, Protocol

def test_parse(tmp_path):
    compose_content = {
        'version': '3.8',
        'services': {
            'web': {
                'image': 'nginx:latest',
                'ports': ['80:80', '127.0.0.1:5353:53/udp', {'target': 443, 'published': 8443}],
                'environment': {
                    'DEBUG': 'true'
                },
                'restart': 'always',
                'networks': ['front'],
            },
            'db': {
                'image': 'postgres:13',
                'volumes': ['db_data:/var/lib/postgresql/data', './init:/docker-entrypoint-initdb.d:ro'],
                'command': ['postgres', '-c', 'max_connections=200'],
                'depends_on': {'cache': {'condition': 'service_started'}},
                'healthcheck': {'test': ['CMD', 'pg_isready'], 'interval': '10s', 'retries': 5},
            }
        },
        'networks': {
            'front': {'driver': 'bridge', 'ipam': {'config': [{'subnet': '10.1.0.0/24'}]}},
            'shared': {'external': True, 'name': 'corp-net'},
        },
        'volumes': {
            'db_data': {}
        }
    }

    compose_file = tmp_path / "docker-compose.yml"
    with open(compose_file, 'w') as f:
        yaml.dump(compose_content, f)

    parser = ComposeParser()
    doc = parser.parse(str(compose_file))
    services = {s.name: s for s in doc.services}

    assert set(services) == {'web', 'db'}
    web, db = services['web'], services['db']
    assert web.image == 'nginx:latest'
    assert [(p.host, p.container, p.protocol) for p in web.ports] == [
        ('80', '80', Protocol.TCP), ('5353', '53', Protocol.UDP), ('8443', '443', Protocol.TCP)]
    assert (web.environment[0].key, web.environment[0].value) == ('DEBUG', 'true')
    assert web.restart == RestartPolicyCondition.ALWAYS
    assert web.networks == ['front']

    assert db.volumes[0].source == 'db_data'
    assert db.volumes[0].target == '/var/lib/postgresql/data'
    assert db.volumes[1].read_only is True
    assert db.command == '["postgres", "-c", "max_connections=200"]'
    assert db.depends_on == ['cache']
    assert db.healthcheck.retries == '5'

    nets = {n.name: n for n in doc.networks}
    assert nets['front'].ipam.config[0].subnet == '10.1.0.0/24'
    assert nets['shared'].external is True
    assert nets['shared'].external_name == 'corp-net'
    assert [v.name for v in doc.volumes] == ['db_data']

def test_round_trip_keeps_exec_form():
    content = """
services:
  db:
    image: postgres
    command: ["postgres", "-c", "shared_buffers=256MB"]
    restart: no
"""
    doc = ComposeParser().parse_from_string(content)
    out = ComposeYamlConverter(doc).convert()
    assert 'command: ["postgres", "-c", "shared_buffers=256MB"]' in out
    assert "restart: 'no'" in out

def test_empty_template_gives_default_service():
    doc = ComposeParser().parse_from_string("")
    assert len(doc.services) == 1
    assert doc.services[0].name == ""

@pytest.mark.parametrize("content", [
    "services: [unclosed",
    "- just\n- a list\n",
    "services:\n  web: plain-string\n",
    "services:\n  web:\n    privileged: [1, 2]\n",
])
def test_unreadable_templates(content):
    with pytest.raises(TemplateReadError):
        ComposeParser().parse_from_string(content)

def test_parse_document():
    content = '{"services": [{"name": "web", "image": "nginx", "privileged": false}], "networks": [{"name": "n"}]}'
    doc = ComposeParser().parse_document(content)
    assert doc.services[0].privileged is False
    assert doc.networks[0].name == "n"
    with pytest.raises(TemplateReadError):
        ComposeParser().parse_document('{"services": [{"ports": "nope"}]}')

def test_unquoted_ports_stay_strings():
    content = """
services:
  dns:
    image: coredns/coredns
    ports:
      - 53:53/udp
      - 2222:22
      - 21:21
"""
    doc = ComposeParser().parse_from_string(content)
    ports = [(p.host, p.container, p.protocol) for p in doc.services[0].ports]
    assert ports == [('53', '53', Protocol.UDP), ('2222', '22', Protocol.TCP), ('21', '21', Protocol.TCP)]

    data = yaml.safe_load(ComposeYamlConverter(doc).convert())
    assert data['services']['dns']['ports'] == ['53:53/udp', '2222:22', '21:21']

def test_numbers_are_still_numbers():
    content = "services:\n  web:\n    healthcheck:\n      test: [CMD, true]\n      retries: 3\n    shm_size: 1.5\n"
    svc = ComposeParser().parse_from_string(content).services[0]
    assert svc.healthcheck.retries == '3'
    assert svc.shm_size == '1.5'

def test_environment_without_value():
    content = """
services:
  app:
    image: alpine
    environment:
      - PASSTHROUGH
      - EMPTY=
      - SET=1
    labels:
      inherit:
      tier: web
"""
    svc = ComposeParser().parse_from_string(content).services[0]
    assert [(e.key, e.value) for e in svc.environment] == [('PASSTHROUGH', None), ('EMPTY', ''), ('SET', '1')]
    assert svc.labels[0].value is None

    out = ComposeYamlConverter(ComposeParser().parse_from_string(content)).convert()
    assert "      - PASSTHROUGH\n      - EMPTY=\n      - SET=1\n" in out
    assert "      - inherit\n      - tier=web\n" in out
