"""Tests for HCL configuration loading."""

import pytest

from statelock.config import load_configuration, parse_configuration, resolve_output
from statelock.errors import ParseError
from statelock.models import BackendType, ResourceDescriptor, StateDocument

MAIN_TF = '''
terraform {
  backend "s3" {
    bucket         = "my-terraform-state"
    key            = "ec2/terraform.tfstate"
    region         = "us-east-1"
    dynamodb_table = "terraform-locks"
    encrypt        = true
  }
}

provider "aws" {
  region = "us-east-1"
}

variable "instance_type" {
  default = "t2.micro"
}

resource "aws_instance" "web" {
  ami           = "ami-0c55b159cbfafe1f0"
  instance_type = var.instance_type

  tags = {
    Name = "web-server"
  }
}

output "public_ip" {
  value = aws_instance.web.public_ip
}
'''


class TestParseConfiguration:

    def test_backend_block(self):
        config = parse_configuration(MAIN_TF)
        backend = config.backend
        assert backend.type == BackendType.S3
        assert backend.bucket == "my-terraform-state"
        assert backend.key == "ec2/terraform.tfstate"
        assert backend.region == "us-east-1"
        assert backend.lock_table == "terraform-locks"
        assert backend.encrypt is True

    def test_resources_with_variables(self):
        config = parse_configuration(MAIN_TF)
        assert [r.address for r in config.resources] == ["aws_instance.web"]
        web = config.resources[0]
        assert web.attributes["ami"] == "ami-0c55b159cbfafe1f0"
        assert web.attributes["instance_type"] == "t2.micro"
        assert web.attributes["tags"] == {"Name": "web-server"}

    def test_variable_override(self):
        config = parse_configuration(MAIN_TF, overrides={"instance_type": "t3.large"})
        assert config.resources[0].attributes["instance_type"] == "t3.large"

    def test_providers_and_outputs(self):
        config = parse_configuration(MAIN_TF)
        assert config.providers["aws"]["region"] == "us-east-1"
        assert [o.name for o in config.outputs] == ["public_ip"]

    def test_s3_backend_encrypts_unless_disabled(self):
        config = parse_configuration('terraform {\n  backend "s3" {\n    bucket = "b"\n    key = "k"\n  }\n}\n')
        assert config.backend.encrypt is True

    def test_local_backend(self):
        config = parse_configuration('terraform {\n  backend "local" {\n    path = "dev.tfstate"\n  }\n}\n')
        assert config.backend.type == BackendType.LOCAL
        assert config.backend.path == "dev.tfstate"

    def test_no_backend(self):
        config = parse_configuration('resource "null_resource" "a" {\n  x = 1\n}\n')
        assert config.backend is None
        assert config.resources[0].attributes == {"x": 1}

    def test_unsupported_backend(self):
        with pytest.raises(ParseError):
            parse_configuration('terraform {\n  backend "consul" {\n    path = "x"\n  }\n}\n')

    def test_undeclared_variable(self):
        with pytest.raises(ParseError):
            parse_configuration('resource "null_resource" "a" {\n  x = var.missing\n}\n')

    def test_invalid_syntax(self):
        with pytest.raises(ParseError):
            parse_configuration('resource "null_resource" {{{')


def test_load_missing_file(temp_dir):
    with pytest.raises(ParseError, match="not found"):
        load_configuration(temp_dir / "main.tf")


def test_load_file(temp_dir):
    path = temp_dir / "main.tf"
    path.write_text(MAIN_TF)
    assert load_configuration(path).backend.bucket == "my-terraform-state"


class TestResolveOutput:

    def _state(self):
        doc = StateDocument.empty()
        doc.record(ResourceDescriptor(type="aws_instance", name="web", id="i-123",
                                      attributes={"public_ip": "54.1.2.3"}))
        return doc

    def test_attribute_reference(self):
        assert resolve_output("${aws_instance.web.public_ip}", self._state()) == "54.1.2.3"

    def test_id_reference(self):
        assert resolve_output("${aws_instance.web.id}", self._state()) == "i-123"

    def test_literal_values_pass_through(self):
        assert resolve_output("plain", self._state()) == "plain"
        assert resolve_output(42, self._state()) == 42
        assert resolve_output("${aws_instance.db.id}", self._state()) == "${aws_instance.db.id}"
