"""Tests for buildmeta.environment."""

import os
from unittest.mock import patch

from buildmeta.environment import (
    TEAMCITY_PROPERTIES_ENV,
    Environment,
    default_system_properties,
    read_properties_file,
)


class TestEnvVariable:
    def test_present_variable(self):
        env = Environment(env={"JENKINS_URL": "https://ci"})
        assert env.env_variable("JENKINS_URL") == "https://ci"
        assert env.is_set("JENKINS_URL")

    def test_missing_variable(self):
        env = Environment(env={})
        assert env.env_variable("JENKINS_URL") is None
        assert not env.is_set("JENKINS_URL")

    def test_empty_variable_is_set_but_has_no_value(self):
        env = Environment(env={"BUILD_URL": ""})
        assert env.is_set("BUILD_URL")
        assert env.env_variable("BUILD_URL") is None

    def test_defaults_to_process_environment(self):
        with patch.dict(os.environ, {"BUILDMETA_PROBE": "yes"}, clear=True):
            assert Environment().env_variable("BUILDMETA_PROBE") == "yes"


class TestSystemProperty:
    def test_default_properties_include_os_name(self):
        assert "os.name" in default_system_properties()
        assert Environment(env={}).system_property("os.name")

    def test_empty_property_is_present(self):
        env = Environment(env={}, properties={"skipTests": ""})
        assert env.system_property("skipTests") == ""

    def test_missing_property(self):
        env = Environment(env={}, properties={})
        assert env.system_property("idea.version") is None


class TestProjectProperty:
    def test_project_properties_win_over_system_properties(self):
        env = Environment(
            env={},
            properties={"skipTests": "false"},
            project_properties={"skipTests": "true"},
        )
        assert env.project_property("skipTests") == "true"

    def test_falls_back_to_system_properties(self):
        env = Environment(env={}, properties={"skipITs": "true"})
        assert env.project_property("skipITs") == "true"

    def test_reads_teamcity_build_properties_file(self, tmp_path):
        props = tmp_path / "build.properties"
        props.write_text("teamcity.build.id=1234\nagent.name=agent-7\n")
        env = Environment(
            env={TEAMCITY_PROPERTIES_ENV: str(props)}, properties={}
        )
        assert env.project_property("teamcity.build.id") == "1234"
        assert env.project_property("agent.name") == "agent-7"

    def test_no_teamcity_file(self):
        env = Environment(env={}, properties={})
        assert env.project_property("teamcity.build.id") is None


class TestReadPropertiesFile:
    def test_unescapes_java_escapes(self, tmp_path):
        props = tmp_path / "config.properties"
        props.write_text("teamcity.serverUrl=http\\://tc.example.com\\:8111\n")
        assert read_properties_file(str(props)) == {
            "teamcity.serverUrl": "http://tc.example.com:8111"
        }

    def test_missing_file_is_empty(self, tmp_path):
        assert read_properties_file(str(tmp_path / "missing.properties")) == {}
