from dataclasses import dataclass, field
from pathlib import Path

from manual_publish.collaborators import Builder, Publisher, VersionProbe
from manual_publish.core import ILogger, InternalError, Settings, sha256_tree
from manual_publish.models import ArtifactKind, BuildArtifact, TriggerEvent

from .events import EventSink, EventType, make_event
from .types import ArtifactRef


@dataclass(slots=True)
class RunContext:
    """
    Context shared across steps for a single publish run.
    """

    run_id: str
    run_root: Path
    event: TriggerEvent
    settings: Settings
    builder: Builder
    probe: VersionProbe
    publisher: Publisher
    logger: ILogger
    events: EventSink

    # artifacts waiting for their deploy step
    artifacts: dict[ArtifactKind, BuildArtifact] = field(default_factory=dict)
    # run-scoped environment; the probed version lives here
    env: dict[str, str] = field(default_factory=dict)

    def stage_logger(self, stage: str) -> ILogger:
        return self.logger.bind(stage=stage)

    def emit(self, event: EventType | str, *, stage: str | None = None, **kw: object) -> None:
        # Keep event chatter at debug level to leave console logs readable.
        event_value = event.value if isinstance(event, EventType) else str(event)
        self.logger.debug(event_value, event_type=event_value, stage=stage, **kw)
        self.events.emit(
            make_event(event_type=event_value, run_id=self.run_id, stage=stage, **kw)
        )

    def record_artifact(self, *, stage: str, artifact: BuildArtifact) -> ArtifactRef:
        """
        Hold `artifact` for its deploy step and emit a content digest for it.
        """
        if artifact.kind in self.artifacts:
            raise InternalError(f"Artifact {artifact.kind} was already built this run")
        digest = sha256_tree(artifact.content_root)
        ref = ArtifactRef(
            kind=artifact.kind.value,
            content_root=str(artifact.content_root),
            sha256=digest.sha256,
            files=digest.files,
            bytes=digest.bytes,
        )
        self.artifacts[artifact.kind] = artifact
        self.emit(
            EventType.ARTIFACT_BUILT,
            stage=stage,
            kind=ref.kind,
            content_root=ref.content_root,
            sha256=ref.sha256,
            files=ref.files,
            bytes=ref.bytes,
        )
        return ref

    def take_artifact(self, *, stage: str, kind: ArtifactKind) -> BuildArtifact:
        """
        Hand the built artifact to its deploy step. Each artifact is taken once.
        """
        try:
            artifact = self.artifacts.pop(kind)
        except KeyError:
            raise InternalError(f"No {kind} artifact available for {stage}") from None
        self.emit(EventType.ARTIFACT_CONSUMED, stage=stage, kind=kind.value)
        return artifact

    def export_env(self, *, stage: str, name: str, value: str) -> None:
        """
        Make `name=value` visible for the rest of the run.

        Also appended to the Actions environment file when one is configured,
        so later workflow steps can read it.
        """
        self.env[name] = value
        env_file = self.settings.github_env
        if env_file is not None:
            with Path(env_file).open("a", encoding="utf-8") as f:
                f.write(f"{name}={value}\n")
        self.emit(
            EventType.ENV_EXPORTED,
            stage=stage,
            name=name,
            value=value,
            env_file=str(env_file) if env_file else None,
        )

    def require_env(self, name: str) -> str:
        value = self.env.get(name)
        if not value:
            raise InternalError(f"{name} is not set in the run environment")
        return value
