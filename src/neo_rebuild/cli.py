import importlib
import logging

import click

from . import catalog, rom_utils, titles
from .cmc import CmcBackend
from .errors import RebuildError


def _load_title(catalog_path, title):
    try:
        layouts = catalog.load_catalog(catalog_path)
    except ValueError as e:
        raise click.ClickException(f"Bad catalog: {e}")
    if title not in layouts:
        raise click.BadParameter(f"'{title}' is not in {catalog_path}", param_hint="--title")
    return layouts[title]


def _load_backend(ref):
    """Resolve 'package.module:attr' to a CmcBackend; classes are instantiated."""
    module_name, _, attr = ref.partition(":")
    if not module_name or not attr:
        raise click.BadParameter("backend must look like 'package.module:Name'", param_hint="--backend")
    try:
        target = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise click.BadParameter(f"cannot load '{ref}': {e}", param_hint="--backend")
    backend = target() if isinstance(target, type) else target
    if not isinstance(backend, CmcBackend):
        raise click.BadParameter(f"'{ref}' is not a CmcBackend", param_hint="--backend")
    return backend


@click.group()
@click.option("--loglevel", default="warning", show_default=True,
              type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False))
def main(loglevel):
    """Neo Geo ROM set rebuilder."""
    logging.basicConfig(level=loglevel.upper(), format="%(levelname)s - %(message)s")


@main.command("titles")
def list_titles():
    """List titles with special handling."""
    for name, strategy in sorted(titles.STRATEGIES.items()):
        if strategy is titles.COMMON:
            continue
        click.echo(f"{name:<10} protection: {strategy.protection}")
    click.echo("(any other title uses the common strategy)")


@main.command()
@click.option("--catalog", "catalog_path", type=click.Path(exists=True, dir_okay=False), required=True)
@click.option("--title", required=True)
@click.option("--roms", type=click.Path(exists=True, file_okay=False), required=True, help="Directory of chip dumps")
def verify(catalog_path, title, roms):
    """Check chip sizes and CRC32s against the catalog."""
    layout = _load_title(catalog_path, title)
    bad = 0
    for entry in rom_utils.inspect_chips(layout, roms):
        label = f"{entry['area']:<2} {entry['name']}"
        if "error" in entry:
            click.echo(f"  MISSING {label}")
            bad += 1
        elif entry["problems"]:
            click.echo(f"  BAD     {label}: {'; '.join(entry['problems'])}")
            bad += 1
        else:
            click.echo(f"  OK      {label} ({entry['size']} bytes, CRC32 {entry['crc32']:08X})")
    if bad:
        raise click.ClickException(f"{bad} chip(s) failed verification")


@main.command()
@click.option("--catalog", "catalog_path", type=click.Path(exists=True, dir_okay=False), required=True)
@click.option("--title", required=True)
@click.option("--roms", type=click.Path(exists=True, file_okay=False), required=True, help="Directory of chip dumps")
@click.option("--out", type=click.Path(file_okay=False), required=True, help="Output directory")
@click.option("--backend", default=None, help="CMC backend as 'package.module:Name'")
@click.option("--verify/--no-verify", default=True, help="Check chip CRC32s before rebuilding (default: on)")
def build(catalog_path, title, roms, out, backend, verify):
    """Rebuild a title and write one file per area."""
    layout = _load_title(catalog_path, title)
    cmc_backend = _load_backend(backend) if backend else None
    try:
        streams = rom_utils.open_streams(layout, roms, verify=verify)
        image = titles.populate(layout, streams, backend=cmc_backend, title=title)
    except (RebuildError, ValueError, FileNotFoundError) as e:
        raise click.ClickException(str(e))
    for path in rom_utils.write_image(out, image):
        click.echo(f"Wrote {path} ({path.stat().st_size} bytes)")


if __name__ == "__main__":
    main()
