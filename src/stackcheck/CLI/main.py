"""
Command Line Interface for stackcheck.
"""
import logging
import os
import click
from ..errors import StackcheckError
from ..CONVERTERS.to_summary import SummaryConverter
from ..PARSERS.yaml_loader import dump_yaml
from ..RUNNERS.dependency_resolver import DependencyResolver
from ..VALIDATORS.descriptor_loader import check_descriptor

logger = logging.getLogger(__name__)

def _load(ctx, check_env_files=False, strict_interpolation=False):
    """
    Parses and validates the descriptor selected with --file, or exits with an error.
    """
    file = ctx.obj['file']
    if not os.path.exists(file):
        raise click.ClickException(f"{file} not found.")
    logger.debug("Loading descriptor %s", file)
    try:
        return check_descriptor(
            file,
            project_dir=ctx.obj['project_dir'],
            env_file=ctx.obj['env_file'],
            check_env_files=check_env_files,
            strict_interpolation=strict_interpolation,
        )
    except StackcheckError as e:
        raise click.ClickException(str(e))
    except OSError as e:
        # Unreadable descriptor or --env-file, e.g. a directory or a missing path
        raise click.ClickException(f"{e.filename or file}: {e.strerror or e}")

@click.group()
@click.option('--file', '-f', default='docker-compose.yml', help='Descriptor file path')
@click.option('--project-dir', type=click.Path(file_okay=False), default=None,
              help='Directory relative paths resolve against (default: the descriptor directory)')
@click.option('--env-file', type=click.Path(dir_okay=False), default=None,
              help='Env file used for variable interpolation (default: <project-dir>/.env)')
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, file, project_dir, env_file, verbose):
    """
    stackcheck - validate multi-service deployment descriptors.

    Parses docker-compose style files and checks that services, dependencies
    and named volumes are consistent before an engine ever sees them.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj['file'] = file
    ctx.obj['project_dir'] = project_dir
    ctx.obj['env_file'] = env_file

@cli.command()
@click.option('--check-env-files', is_flag=True, help='Warn about env files missing on disk')
@click.option('--strict', is_flag=True, help='Treat warnings and unset variables as errors')
@click.pass_context
def validate(ctx, check_env_files, strict):
    """Check the descriptor and report every issue found."""
    descriptor, report = _load(ctx, check_env_files=check_env_files, strict_interpolation=strict)
    for issue in report.issues:
        click.echo(str(issue), err=True)

    failed = bool(report.errors) or (strict and bool(report.warnings))
    if failed:
        click.echo(f"{ctx.obj['file']}: invalid ({len(report.errors)} error(s), "
                   f"{len(report.warnings)} warning(s))")
        ctx.exit(1)
    click.echo(f"{ctx.obj['file']}: valid ({len(descriptor.services)} service(s), "
               f"{len(descriptor.volumes)} volume(s), {len(report.warnings)} warning(s))")

@cli.command()
@click.pass_context
def config(ctx):
    """Print the normalized descriptor."""
    descriptor, report = _load(ctx)
    if report.errors:
        for issue in report.errors:
            click.echo(str(issue), err=True)
        ctx.exit(1)
    click.echo(dump_yaml(descriptor.to_compose()), nl=False)

@cli.command()
@click.option('--reverse', is_flag=True, help='Print shutdown order instead')
@click.pass_context
def order(ctx, reverse):
    """Print the order an engine would start services in."""
    descriptor, _ = _load(ctx)
    resolver = DependencyResolver()
    try:
        names = resolver.shutdown_order(descriptor) if reverse else resolver.resolve_order(descriptor)
    except StackcheckError as e:
        raise click.ClickException(str(e))
    for name in names:
        click.echo(name)

@cli.command()
@click.pass_context
def summary(ctx):
    """Show services, ports, volumes and validation results."""
    descriptor, report = _load(ctx)
    converter = SummaryConverter(descriptor, source=ctx.obj['file'])
    click.echo(converter.convert(report))

def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})

if __name__ == '__main__':
    main()
