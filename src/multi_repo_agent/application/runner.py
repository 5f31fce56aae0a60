"""Application service running the generation and execution phases."""

from pathlib import Path
from typing import Any, Mapping, Optional, Union

from ..core.aggregator import print_summary
from ..core.config import (
    apply_parallel_rules,
    check_generation_inputs,
    load_config,
    resolve_bundle_paths,
    validate_config,
)
from ..core.executor import AgentRunner, execute_tasks, run_agent_process
from ..core.materializer import generate_tasks
from ..core.process_control import clear_shutdown_request
from ..core.provisioner import RepositoryProvisioner
from ..errors import ConfigError
from ..infra.logger import log_error, log_info, log_success, print_header


def run_pipeline(
    cli_options: Mapping[str, Any],
    root_dir: Optional[Union[str, Path]] = None,
    provisioner: Optional[RepositoryProvisioner] = None,
    runner: AgentRunner = run_agent_process,
) -> int:
    """Run generate and/or execute phases; returns the process exit code.

    Configuration and input problems are reported before anything is written.
    """
    clear_shutdown_request()
    bundle = cli_options.get("bundle")

    try:
        config = apply_parallel_rules(validate_config(load_config(cli_options, bundle, root_dir)))
        paths = resolve_bundle_paths(
            bundle,
            config["guideFile"],
            root_dir,
            guide_from_cli=cli_options.get("guideFile") is not None,
        )
        if not config["runOnly"]:
            check_generation_inputs(paths)
    except ConfigError as exc:
        log_error(str(exc))
        return 1

    if paths.bundle_dir is not None:
        log_info(f"Using bundle: {paths.bundle_dir}")
        if paths.bundle_guide:
            log_info(f"Using bundle-specific guide: {paths.guide_file}")

    artifacts = None
    if not config["runOnly"]:
        print_header("TASK GENERATION")
        try:
            artifacts = generate_tasks(paths, config, provisioner=provisioner)
        except ConfigError as exc:
            log_error(str(exc))
            return 1
        log_success(f"Successfully generated {len(artifacts)} tasks in {paths.output_dir}")

    if config["generateOnly"]:
        return 0

    print_header("TASK EXECUTION")
    try:
        summary = execute_tasks(paths.output_dir, paths.log_dir, config, artifacts=artifacts, runner=runner)
    except ConfigError as exc:
        log_error(str(exc))
        return 1

    print_summary(summary)
    return summary.exit_code
