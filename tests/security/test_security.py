import pytest
import yaml
from dcb.CONVERTERS.to_compose_yaml import project
from dcb.MODELS.service_definition import ServiceDefinition, KeyValue
from dcb.PARSERS.compose_parser import ComposeParser, TemplateReadError

def test_yaml_injection_through_field_values():
    """
    Field values containing newlines or YAML syntax must stay scalar values
    and never introduce new keys.
    """
    svc = ServiceDefinition(
        name="web",
        image="nginx\nprivileged: true",
        user="root\"\ncap_add: [ALL]",
        environment=[KeyValue(key="A", value="1\n    privileged: true")],
    )
    data = yaml.safe_load(project([svc]))
    web = data["services"]["web"]
    assert "privileged" not in web
    assert "cap_add" not in web
    assert web["image"] == "nginx\nprivileged: true"
    assert web["user"] == "root\"\ncap_add: [ALL]"

def test_template_cannot_construct_python_objects():
    """
    Imported templates are loaded with the safe loader.
    """
    content = "services: !!python/object/apply:os.system ['echo pwned']\n"
    with pytest.raises(TemplateReadError):
        ComposeParser().parse_from_string(content)
