"""
Command Line Interface for DCB.
"""
import click
import logging
from ..CONVERTERS.to_compose_yaml import ComposeYamlConverter
from ..MANAGERS.document_manager import DocumentManager
from ..MANAGERS.editor_session import EditorSession
from ..PARSERS.compose_parser import ComposeParser, TemplateReadError
from ..REGISTRY.template_store import TemplateStore, TemplateStoreError
from ..UTILS.config import load_settings

def _emit(converter: ComposeYamlConverter, out):
    """
    Writes the YAML to a file, or prints it when no output path is given.
    """
    if out:
        converter.write(out)
        click.echo(f"Compose file written to {out}")
    else:
        click.echo(converter.convert(), nl=False)

def _message(error: Exception) -> str:
    # str(KeyError) adds quotes around the message
    return str(error.args[0]) if error.args else str(error)

@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, verbose):
    """
    DCB - Docker Compose Builder.

    Builds docker-compose.yml files from an editable document model.
    """
    ctx.ensure_object(dict)
    settings = load_settings()
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj['settings'] = settings

@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--out', '-o', default=None, help='Output file (default: stdout)')
def render(file, out):
    """Render a saved document (JSON or YAML) as a compose file."""
    with open(file, 'r') as f:
        content = f.read()
    try:
        document = ComposeParser().parse_document(content)
    except TemplateReadError as e:
        raise click.ClickException(str(e))

    for problem in DocumentManager.reference_problems(document):
        click.echo(f"Warning: {problem}", err=True)
    _emit(ComposeYamlConverter(document), out)

@cli.command()
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--out', '-o', default=None, help='Output file (default: stdout)')
def normalize(file, out):
    """Re-emit a compose file in canonical form."""
    try:
        document = ComposeParser().parse(file)
    except TemplateReadError as e:
        raise click.ClickException(str(e))
    _emit(ComposeYamlConverter(document), out)

@cli.group()
@click.pass_context
def store(ctx):
    """Browse and import templates from the Compose Store."""
    settings = ctx.obj['settings']
    ctx.obj['store'] = TemplateStore(settings.store_url, str(settings.cache_dir), settings.cache_ttl)

@store.command('list')
@click.option('--refresh', is_flag=True, help='Ignore the cache')
@click.pass_context
def store_list(ctx, refresh):
    """List available templates."""
    template_store = ctx.obj['store']
    try:
        templates = template_store.refresh() if refresh else template_store.list_templates()
    except TemplateStoreError as e:
        raise click.ClickException(str(e))
    for template in templates:
        click.echo(template.name)

@store.command('show')
@click.argument('name')
@click.pass_context
def store_show(ctx, name):
    """Print a template as published."""
    try:
        template = ctx.obj['store'].get_template(name)
    except (KeyError, TemplateStoreError) as e:
        raise click.ClickException(_message(e))
    click.echo(template.content, nl=False)

@store.command('import')
@click.argument('name')
@click.option('--out', '-o', default=None, help='Output file (default: stdout)')
@click.pass_context
def store_import(ctx, name, out):
    """Import a template into a new document and emit it."""
    try:
        template = ctx.obj['store'].get_template(name)
    except (KeyError, TemplateStoreError) as e:
        raise click.ClickException(_message(e))

    session = EditorSession()
    try:
        session.import_template(template.content, template.name)
    except TemplateReadError:
        raise click.ClickException(f"Template '{name}' could not be read")
    _emit(ComposeYamlConverter(session.document), out)

def main():
    """
    Main entry point for the CLI.
    """
    cli(obj={})

if __name__ == '__main__':
    main()
