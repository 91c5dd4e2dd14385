"""CI platform detection and per-platform metadata extraction.

Each supported CI server is recognised by one distinguishing environment
variable.  Detection runs once per build and yields a ``CiClassification``
that every consumer (CI metadata, git branch resolution, IDE detection)
reads, so the platform checks are never duplicated.

Extraction is table driven: every platform owns a tuple of steps, each step
turning environment state into zero or more ``MetadataEntry`` objects.  A
missing variable only drops its own entry.

Platforms are not mutually exclusive.  If the variables of several
platforms are set at once, every matching block runs in table order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional, Tuple

from .entries import EntryKind, MetadataEntry
from .environment import Environment
from .search_links import append_if_missing, url_encode

_log = logging.getLogger(__name__)


class CiPlatform(Enum):
    JENKINS = "Jenkins"
    HUDSON = "Hudson"
    TEAMCITY = "TeamCity"
    CIRCLECI = "CircleCI"
    BAMBOO = "Bamboo"
    GITHUB_ACTIONS = "GitHub Actions"
    GITLAB = "GitLab"
    TRAVIS = "Travis"
    BITRISE = "Bitrise"
    GOCD = "GoCD"
    AZURE_PIPELINES = "Azure Pipelines"


GENERIC_CI_VARIABLE = "CI"

# Detection order is also extraction order.
PLATFORM_MARKERS: Tuple[Tuple[CiPlatform, str], ...] = (
    (CiPlatform.JENKINS, "JENKINS_URL"),
    (CiPlatform.HUDSON, "HUDSON_URL"),
    (CiPlatform.TEAMCITY, "TEAMCITY_VERSION"),
    (CiPlatform.CIRCLECI, "CIRCLE_BUILD_URL"),
    (CiPlatform.BAMBOO, "bamboo_resultsUrl"),
    (CiPlatform.GITHUB_ACTIONS, "GITHUB_ACTIONS"),
    (CiPlatform.GITLAB, "GITLAB_CI"),
    (CiPlatform.TRAVIS, "TRAVIS_JOB_ID"),
    (CiPlatform.BITRISE, "BITRISE_BUILD_URL"),
    (CiPlatform.GOCD, "GO_SERVER_URL"),
    (CiPlatform.AZURE_PIPELINES, "TF_BUILD"),
)


@dataclass(frozen=True)
class CiClassification:
    """Result of CI detection for one build."""

    generic: bool = False
    platforms: Tuple[CiPlatform, ...] = ()

    @property
    def is_ci(self) -> bool:
        return self.generic or bool(self.platforms)

    def is_active(self, platform: CiPlatform) -> bool:
        return platform in self.platforms

    def any_active(self, platforms: Iterable[CiPlatform]) -> bool:
        return any(p in self.platforms for p in platforms)


def is_generic_ci(environment: Environment) -> bool:
    return (
        environment.is_set(GENERIC_CI_VARIABLE)
        or environment.system_property(GENERIC_CI_VARIABLE) is not None
    )


def classify(environment: Environment) -> CiClassification:
    """Detect the generic CI flag and every active CI platform."""
    platforms = tuple(
        platform
        for platform, variable in PLATFORM_MARKERS
        if environment.is_set(variable)
    )
    classification = CiClassification(
        generic=is_generic_ci(environment), platforms=platforms
    )
    _log.debug(
        "CI classification: ci=%s platforms=%s",
        classification.is_ci,
        [p.value for p in platforms],
    )
    return classification


# ---------------------------------------------------------------------------
# Extraction steps
# ---------------------------------------------------------------------------

Step = Callable[[Environment, CiClassification], Iterable[MetadataEntry]]


@dataclass(frozen=True)
class FieldMapping:
    """Copy one environment variable into one build scan field.

    For ``EntryKind.TAG`` the variable's value itself becomes the tag and
    ``name`` is unused.
    """

    variable: str
    kind: EntryKind
    name: str = ""

    def lookup(self, environment: Environment) -> Optional[str]:
        return environment.env_variable(self.variable)

    def __call__(
        self, environment: Environment, _classification: CiClassification
    ) -> Iterator[MetadataEntry]:
        value = self.lookup(environment)
        if value is None:
            return
        if self.kind is EntryKind.TAG:
            yield MetadataEntry.tag(value)
        else:
            yield MetadataEntry(self.kind, self.name, value)


@dataclass(frozen=True)
class ProjectPropertyMapping(FieldMapping):
    """Like ``FieldMapping`` but reads a project property."""

    def lookup(self, environment: Environment) -> Optional[str]:
        return environment.project_property(self.variable)


def _link(variable: str, label: str) -> FieldMapping:
    return FieldMapping(variable, EntryKind.LINK, label)


def _value(variable: str, name: str) -> FieldMapping:
    return FieldMapping(variable, EntryKind.VALUE, name)


def _searchable(variable: str, name: str) -> FieldMapping:
    return FieldMapping(variable, EntryKind.SEARCHABLE_VALUE, name)


def _jenkins_build_link(
    environment: Environment, classification: CiClassification
) -> Iterator[MetadataEntry]:
    url = environment.env_variable("BUILD_URL")
    if url:
        label = (
            "Jenkins build"
            if classification.is_active(CiPlatform.JENKINS)
            else "Hudson build"
        )
        yield MetadataEntry.link(label, url)


def _jenkins_pipeline_search(
    environment: Environment, _classification: CiClassification
) -> Iterator[MetadataEntry]:
    job = environment.env_variable("JOB_NAME")
    number = environment.env_variable("BUILD_NUMBER")
    if job and number:
        yield MetadataEntry.search_link(
            "CI pipeline", {"CI job": job, "CI build number": number}
        )


def _teamcity_build_link(
    environment: Environment, _classification: CiClassification
) -> Iterator[MetadataEntry]:
    config_file = environment.project_property("teamcity.configuration.properties.file")
    build_id = environment.project_property("teamcity.build.id")
    if not (config_file and build_id):
        return
    server_url = environment.read_properties_file(config_file).get("teamcity.serverUrl")
    if server_url:
        yield MetadataEntry.link(
            "TeamCity build",
            append_if_missing(server_url, "/")
            + "viewLog.html?buildId="
            + url_encode(build_id),
        )


def _github_actions_link(
    environment: Environment, _classification: CiClassification
) -> Iterator[MetadataEntry]:
    repository = environment.env_variable("GITHUB_REPOSITORY")
    run_id = environment.env_variable("GITHUB_RUN_ID")
    if repository and run_id:
        yield MetadataEntry.link(
            "GitHub Actions build",
            f"https://github.com/{repository}/actions/runs/{run_id}",
        )


_GOCD_DETAIL_VARIABLES = (
    "GO_SERVER_URL",
    "GO_PIPELINE_NAME",
    "GO_PIPELINE_COUNTER",
    "GO_STAGE_NAME",
    "GO_STAGE_COUNTER",
    "GO_JOB_NAME",
)


def _gocd_link(
    environment: Environment, _classification: CiClassification
) -> Iterator[MetadataEntry]:
    values = [environment.env_variable(v) for v in _GOCD_DETAIL_VARIABLES]
    server = values[0]
    if all(values):
        yield MetadataEntry.link(
            "GoCD build", "{}/tab/build/detail/{}/{}/{}/{}/{}".format(*values)
        )
    elif server:
        yield MetadataEntry.link("GoCD", server)


def _azure_pipelines_link(
    environment: Environment, _classification: CiClassification
) -> Iterator[MetadataEntry]:
    server = environment.env_variable("SYSTEM_TEAMFOUNDATIONCOLLECTIONURI")
    project = environment.env_variable("SYSTEM_TEAMPROJECT")
    build_id = environment.env_variable("BUILD_BUILDID")
    if server and project and build_id:
        yield MetadataEntry.link(
            "Azure Pipelines build",
            f"{server}{project}/_build/results?buildId={build_id}",
        )
    elif server:
        yield MetadataEntry.link("Azure Pipelines", server)


@dataclass(frozen=True)
class PlatformExtractor:
    """Extraction table for one CI server.

    The block runs once when any of ``platforms`` is active.
    """

    platforms: Tuple[CiPlatform, ...]
    steps: Tuple[Step, ...]

    def applies_to(self, classification: CiClassification) -> bool:
        return classification.any_active(self.platforms)

    def extract(
        self, environment: Environment, classification: CiClassification
    ) -> list[MetadataEntry]:
        entries: list[MetadataEntry] = []
        for step in self.steps:
            entries.extend(step(environment, classification))
        return entries


PLATFORM_EXTRACTORS: Tuple[PlatformExtractor, ...] = (
    PlatformExtractor(
        (CiPlatform.JENKINS, CiPlatform.HUDSON),
        (
            _jenkins_build_link,
            _value("BUILD_NUMBER", "CI build number"),
            _searchable("NODE_NAME", "CI node"),
            _searchable("JOB_NAME", "CI job"),
            _searchable("STAGE_NAME", "CI stage"),
            _jenkins_pipeline_search,
        ),
    ),
    PlatformExtractor(
        (CiPlatform.TEAMCITY,),
        (
            _teamcity_build_link,
            ProjectPropertyMapping("build.number", EntryKind.VALUE, "CI build number"),
            ProjectPropertyMapping(
                "teamcity.buildType.id", EntryKind.SEARCHABLE_VALUE, "CI build config"
            ),
            ProjectPropertyMapping("agent.name", EntryKind.SEARCHABLE_VALUE, "CI agent"),
        ),
    ),
    PlatformExtractor(
        (CiPlatform.CIRCLECI,),
        (
            _link("CIRCLE_BUILD_URL", "CircleCI build"),
            _value("CIRCLE_BUILD_NUM", "CI build number"),
            _searchable("CIRCLE_JOB", "CI job"),
            _searchable("CIRCLE_WORKFLOW_ID", "CI workflow"),
        ),
    ),
    PlatformExtractor(
        (CiPlatform.BAMBOO,),
        (
            _link("bamboo_resultsUrl", "Bamboo build"),
            _value("bamboo_buildNumber", "CI build number"),
            _searchable("bamboo_planName", "CI plan"),
            _searchable("bamboo_buildPlanName", "CI build plan"),
            _searchable("bamboo_agentId", "CI agent"),
        ),
    ),
    PlatformExtractor(
        (CiPlatform.GITHUB_ACTIONS,),
        (
            _github_actions_link,
            _searchable("GITHUB_WORKFLOW", "CI workflow"),
            _searchable("GITHUB_RUN_ID", "CI run"),
        ),
    ),
    PlatformExtractor(
        (CiPlatform.GITLAB,),
        (
            _link("CI_JOB_URL", "GitLab build"),
            _link("CI_PIPELINE_URL", "GitLab pipeline"),
            _searchable("CI_JOB_NAME", "CI job"),
            _searchable("CI_JOB_STAGE", "CI stage"),
        ),
    ),
    PlatformExtractor(
        (CiPlatform.TRAVIS,),
        (
            _link("TRAVIS_BUILD_WEB_URL", "Travis build"),
            _value("TRAVIS_BUILD_NUMBER", "CI build number"),
            _searchable("TRAVIS_JOB_NAME", "CI job"),
            FieldMapping("TRAVIS_EVENT_TYPE", EntryKind.TAG),
        ),
    ),
    PlatformExtractor(
        (CiPlatform.BITRISE,),
        (
            _link("BITRISE_BUILD_URL", "Bitrise build"),
            _value("BITRISE_BUILD_NUMBER", "CI build number"),
        ),
    ),
    PlatformExtractor(
        (CiPlatform.GOCD,),
        (
            _gocd_link,
            _searchable("GO_PIPELINE_NAME", "CI pipeline"),
            _searchable("GO_JOB_NAME", "CI job"),
            _searchable("GO_STAGE_NAME", "CI stage"),
        ),
    ),
    PlatformExtractor(
        (CiPlatform.AZURE_PIPELINES,),
        (
            _azure_pipelines_link,
            _value("BUILD_BUILDID", "CI build number"),
        ),
    ),
)


def extract_ci_metadata(
    environment: Environment, classification: CiClassification
) -> list[MetadataEntry]:
    """Run the extraction table of every active platform, in table order."""
    entries: list[MetadataEntry] = []
    for extractor in PLATFORM_EXTRACTORS:
        if extractor.applies_to(classification):
            entries.extend(extractor.extract(environment, classification))
    return entries


# ---------------------------------------------------------------------------
# Branch name
# ---------------------------------------------------------------------------

# First matching platform group decides; its variable may still be unset.
BRANCH_VARIABLES: Tuple[Tuple[Tuple[CiPlatform, ...], str], ...] = (
    ((CiPlatform.JENKINS, CiPlatform.HUDSON), "BRANCH_NAME"),
    ((CiPlatform.GITLAB,), "CI_COMMIT_REF_NAME"),
    ((CiPlatform.AZURE_PIPELINES,), "BUILD_SOURCEBRANCH"),
)


def ci_branch_name(
    environment: Environment, classification: CiClassification
) -> Optional[str]:
    """Return the branch the CI server reports, or ``None`` to ask git."""
    for platforms, variable in BRANCH_VARIABLES:
        if classification.any_active(platforms):
            return environment.env_variable(variable)
    return None
