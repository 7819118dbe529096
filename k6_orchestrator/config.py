"""Runtime configuration for the orchestrator."""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class RunnerConfig(BaseModel):
    """Configuration for spawning k6 runs."""

    tests_dir: Path = Field(
        default=Path("k6-tests"),
        validate_default=True,
        description="Working directory of every run (holds tests/ and results/)",
    )
    k6_binary: str = "k6"
    shell: str = "bash"
    batch_script: str = "sequential-tests.sh"
    results_dir: str = "results"
    # Forced on k6 so it never waits for interactive input or floods logs
    log_level: str = "error"
    timezone: str = "Europe/Warsaw"
    kill_grace_period: float = Field(default=5.0, ge=0)
    single_refresh_delay: float = Field(default=2.0, ge=0)
    batch_refresh_delay: float = Field(default=3.0, ge=0)
    kill_process_group: bool = True

    @field_validator("tests_dir")
    @classmethod
    def _absolute_tests_dir(cls, value: Path) -> Path:
        # Absolute, since it is also the cwd of every run
        return value.resolve()

    @property
    def batch_script_path(self) -> Path:
        return self.tests_dir / self.batch_script
