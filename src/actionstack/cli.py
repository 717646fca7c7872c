#!/usr/bin/env python3
"""
Actionstack CLI

Replays recorded action logs through a store and inspects configuration.
"""

import asyncio
import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import click
import yaml

from actionstack import __version__
from actionstack.config import ActionstackConfig, load_config, setup_logging
from actionstack.core.actions import Action, ActionStatus
from actionstack.core.errors import ActionstackError, ConfigurationError, ErrorCode
from actionstack.core.models import Strategy
from actionstack.core.store import Store

logger = logging.getLogger(__name__)


def merge_reducer(state: Any, action: Action) -> Any:
    """Default replay reducer: shallow-merge mapping payloads into the state"""
    if not isinstance(action.payload, Mapping):
        return state
    if state is None:
        return dict(action.payload)
    if isinstance(state, Mapping):
        return {**state, **action.payload}
    return state


def import_reducer(path: str) -> Callable[[Any, Action], Any]:
    """Import a reducer given as ``package.module:function``"""
    module_name, _, attribute = path.partition(':')
    if not module_name or not attribute:
        raise ConfigurationError(
            f"Reducer must be given as 'module:function', got '{path}'",
            code=ErrorCode.REDUCER_NOT_FOUND,
            data={'reducer': path},
        )

    try:
        module = importlib.import_module(module_name)
        reducer = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(
            f"Cannot import reducer '{path}': {e}",
            code=ErrorCode.REDUCER_NOT_FOUND,
            data={'reducer': path},
        ) from e

    if not callable(reducer):
        raise ConfigurationError(
            f"Reducer '{path}' is not callable",
            code=ErrorCode.REDUCER_NOT_FOUND,
            data={'reducer': path},
        )
    return reducer


def load_action_log(path: str) -> Dict[str, Any]:
    """Load an action log from a YAML or JSON file"""
    file_path = Path(path)
    with open(file_path, 'r') as f:
        if file_path.suffix.lower() == '.json':
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if isinstance(data, list):
        data = {'actions': data}
    if not isinstance(data, dict) or not isinstance(data.get('actions', []), list):
        raise ConfigurationError(
            f"Action log must be a list of actions or a mapping with an 'actions' list: {path}",
            data={'path': path},
        )

    for index, entry in enumerate(data.get('actions', [])):
        if not isinstance(entry, dict) or not isinstance(entry.get('type'), str):
            raise ConfigurationError(
                f"Action #{index + 1} in {path} has no string 'type'",
                data={'path': path, 'index': index},
            )
    return data


def _dump(state: Any) -> str:
    return json.dumps(state, indent=2, sort_keys=True, default=str)


def _trace(context, next_fn):
    def handle(action: Action) -> Any:
        result = next_fn(action)
        click.echo(f"{action.type} -> {json.dumps(context.get_state(), sort_keys=True, default=str)}")
        return result
    return handle


async def _replay(
    actions: List[Dict[str, Any]],
    reducer: Callable[[Any, Action], Any],
    initial_state: Any,
    strategy: str,
    trace: bool,
):
    logger.info(f"Replaying {len(actions)} actions with {strategy} strategy")
    store = Store.create({
        'reducer': reducer,
        'initial_state': initial_state,
        'strategy': strategy,
        'middleware': [_trace] if trace else [],
    })

    dispatched = []
    for entry in actions:
        action = Action.from_dict(entry)
        dispatched.append(action)
        try:
            store.dispatch(action)
        except Exception as e:
            # Rejected actions are reported once the replay has finished
            logger.debug(f"Action '{action.type}' failed during replay: {e}")
    await store.wait_until_idle()

    failed = [action for action in dispatched if action.status is ActionStatus.REJECTED]
    return store.get_state(), failed


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              default=None, help='Log level (overrides the configuration)')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False), default=None,
              help='Configuration file (default: ~/.actionstack/config.yaml)')
@click.version_option(version=__version__, prog_name='Actionstack')
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, log_level: Optional[str], config_path: Optional[str]):
    """
    Actionstack - dispatch and execution-tracking engine for state stores
    """
    try:
        config = load_config(config_path)
        if debug:
            config.log_level = 'DEBUG'
        elif verbose:
            config.log_level = 'INFO'
        elif log_level:
            config.log_level = log_level.upper()
        config.validate()
    except ActionstackError as e:
        raise click.ClickException(e.message)

    setup_logging(config)
    ctx.obj = config


@cli.command()
@click.argument('action_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--reducer', default='actionstack.cli:merge_reducer', show_default=True,
              help="Reducer to replay against, as 'module:function'")
@click.option('--strategy', type=click.Choice([s.value for s in Strategy]), default=None,
              help='Override the admission strategy')
@click.option('--trace', is_flag=True, help='Print the state after every committed action')
@click.pass_obj
def replay(config: ActionstackConfig, action_file: str, reducer: str, strategy: Optional[str], trace: bool):
    """Replay an action log from a YAML or JSON file and print the final state"""
    try:
        log = load_action_log(action_file)
        reducer_fn = import_reducer(reducer)
    except ActionstackError as e:
        raise click.ClickException(e.message)

    strategy = strategy or log.get('strategy') or config.strategy
    try:
        state, failed = asyncio.run(_replay(
            log.get('actions', []),
            reducer_fn,
            log.get('initial_state'),
            strategy,
            trace,
        ))
    except ActionstackError as e:
        raise click.ClickException(e.message)

    click.echo(_dump(state))

    if failed:
        for action in failed:
            click.echo(f"❌ {action.type}: {action.reason}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_obj
def config(config: ActionstackConfig):
    """Show current configuration"""
    click.echo(yaml.dump(config.to_dict(), default_flow_style=False, indent=2))


def main():
    """Main CLI entry point"""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\n⚠️  Interrupted by user")
        sys.exit(130)
    except Exception as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
