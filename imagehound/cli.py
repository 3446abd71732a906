"""CLI entry point and orchestration for imagehound."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

import click

from imagehound import __version__
from imagehound.errors import AllVariantsExhausted, HoundError, ProviderError
from imagehound.models import FetchResult, HuntResult, IPAddress, parse_ip
from imagehound.providers import get_provider, list_providers


@click.group()
@click.option(
    "--config", "config_path", default=None, type=click.Path(dir_okay=False),
    help="Config file [default: $IMAGEHOUND_CONFIG or ~/.imagehound.yaml]",
)
@click.option("-v", "--verbose", is_flag=True, help="Show per-edge failures and debug logs")
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], verbose: bool) -> None:
    """imagehound — hunt CDN edges for an unfiltered copy of an image.

    Requests the image from edge servers all over the world, straight by
    IP, and keeps the first copy that comes back intact.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


# ── hunt ──────────────────────────────────────────────────────────────


@main.command("hunt")
@click.argument("url")
@click.option("-o", "--output", default="", help="Output file or directory [default: cwd]")
@click.option("--require-image", is_flag=True, help="Reject 200 responses that are not image data")
@click.option("--ip", "ips", multiple=True, help="Edge IP to try (repeatable) instead of the cache")
@click.option("-H", "--header", "headers", multiple=True,
              help="Header override 'Name: value'; 'Name:' removes it (repeatable)")
@click.option("--json", "json_output", is_flag=True, help="Print a JSON summary to stdout")
@click.option("-q", "--quiet", is_flag=True, help="Suppress progress")
@click.pass_context
def hunt_command(
    ctx: click.Context,
    url: str,
    output: str,
    require_image: bool,
    ips: tuple[str, ...],
    headers: tuple[str, ...],
    json_output: bool,
    quiet: bool,
) -> None:
    """Hunt for an unfiltered copy of the image at URL.

    Example: imagehound hunt https://wx1.sinaimg.cn/mw690/006UeiBSgy1hjnwewgeclj30u01400xm.jpg
    """
    from imagehound.display import render_error, render_info
    from imagehound.export import resolve_output_path
    from imagehound.store import load_config
    from imagehound.variants import parse_image_url, variants_for

    try:
        resolve_output_path(output)
        parts, port = parse_image_url(url)
        header_map = _parse_headers(headers)
        candidates = _parse_ips(ips) if ips else load_config(ctx.obj["config_path"]).cache.resolves
    except (HoundError, click.BadParameter) as exc:
        render_error(str(exc))
        sys.exit(1)

    if not candidates:
        render_error("No cached resolves found, please run `imagehound cache` first")
        sys.exit(1)

    quiet = quiet or json_output
    if not quiet:
        render_info(f"Using {len(candidates)} edge{'s' if len(candidates) != 1 else ''}.")

    variants = variants_for(parts.geturl())
    try:
        result = asyncio.run(_run_hunt(
            variants, port, candidates, header_map,
            require_image=require_image,
            verbose=ctx.obj["verbose"],
            quiet=quiet,
        ))
    except KeyboardInterrupt:
        render_error("Interrupted.")
        sys.exit(130)
    except AllVariantsExhausted as exc:
        render_error(f"No edge served the image ({exc})")
        sys.exit(1)

    _handle_hunt_output(result, output, json_output)


async def _run_hunt(
    variants: list[str],
    port: int,
    ips: list[IPAddress],
    headers: dict[str, list[str]],
    require_image: bool,
    verbose: bool,
    quiet: bool,
) -> HuntResult:
    """Main async orchestration of a hunt."""
    from imagehound.display import ProgressTracker, render_attempt_failure
    from imagehound.hunt import hunt, looks_like_image, status_ok

    policy = looks_like_image if require_image else status_ok

    progress = None
    if not quiet and not verbose:
        progress = ProgressTracker(variants, len(ips))

    def on_result(url: str, result: FetchResult) -> None:
        accepted = policy(result)
        if progress:
            progress.update(url, result, accepted)
        if verbose and not accepted:
            render_attempt_failure(result)

    if progress:
        progress.start()
    try:
        return await hunt(
            variants, port, ips,
            headers=headers or None,
            is_success=policy,
            on_result=on_result,
        )
    finally:
        if progress:
            progress.finish()


def _handle_hunt_output(result: HuntResult, output: str, json_output: bool) -> None:
    from imagehound.display import render_error, render_success
    from imagehound.export import export_json, write_image

    try:
        path = write_image(result, output)
    except HoundError as exc:
        render_error(str(exc))
        sys.exit(1)

    if json_output:
        click.echo(export_json(result, path))
    else:
        render_success(result, path)


def _parse_headers(values: tuple[str, ...]) -> dict[str, list[str]]:
    headers: dict[str, list[str]] = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        name = name.strip()
        if not sep or not name:
            raise click.BadParameter(f"invalid header {raw!r}, expected 'Name: value'")
        value = value.strip()
        if value:
            headers.setdefault(name, []).append(value)
        else:
            headers[name] = []
    return headers


def _parse_ips(values: tuple[str, ...]) -> list[IPAddress]:
    from imagehound.store import unique_ips

    parsed: list[IPAddress] = []
    for raw in values:
        try:
            parsed.append(parse_ip(raw))
        except ValueError:
            raise click.BadParameter(f"invalid IP address {raw!r}") from None
    return unique_ips(parsed)


# ── cache ─────────────────────────────────────────────────────────────


@main.command("cache")
@click.option("-p", "--provider", default="globalping", type=click.Choice(list_providers()),
              help="Resolution provider to use", show_default=True)
@click.option("-f", "--force", is_flag=True, help="Replace existing cached resolves instead of merging")
@click.pass_context
def cache_command(ctx: click.Context, provider: str, force: bool) -> None:
    """Cache edge IP addresses for all Weibo image hostnames.

    Example: imagehound cache -p globalping -f
    """
    from imagehound.display import render_error, render_info
    from imagehound.store import load_config, save_config, unique_ips
    from imagehound.variants import hostnames

    config_path = ctx.obj["config_path"]
    try:
        config = load_config(config_path)
    except HoundError as exc:
        render_error(str(exc))
        sys.exit(1)

    kwargs = {}
    if provider == "globalping":
        kwargs["token"] = config.providers.globalping.token
    resolver = get_provider(provider, **kwargs)

    try:
        locations, resolved = asyncio.run(_run_cache(resolver, hostnames()))
    except KeyboardInterrupt:
        render_error("Interrupted.")
        sys.exit(130)
    except ProviderError as exc:
        render_error(str(exc))
        sys.exit(1)

    previous = [] if force else config.cache.resolves
    config.cache.resolves = unique_ips([*previous, *resolved])
    config.cache.locations[provider] = locations
    try:
        save_config(config, config_path)
    except HoundError as exc:
        render_error(str(exc))
        sys.exit(1)
    render_info(f"Cached {len(config.cache.resolves)} resolves.")


async def _run_cache(resolver, names: list[str]) -> tuple[list[str], list[IPAddress]]:
    """Resolve every hostname in *names* concurrently from all locations."""
    from imagehound.display import render_info, render_warning

    try:
        locations = list(dict.fromkeys(await resolver.locations()))
        if not locations:
            raise ProviderError(f"{resolver.name} reported no usable locations")
        render_info(f"Using {len(locations)} locations.")

        async def _safe_resolve(hostname: str) -> list[IPAddress]:
            try:
                return await resolver.resolve(hostname, locations)
            except ProviderError as exc:
                render_warning(f"Failed to resolve {hostname!r}: {exc}")
                return []

        batches = await asyncio.gather(*(_safe_resolve(h) for h in names))
    finally:
        await resolver.aclose()

    return locations, [ip for batch in batches for ip in batch]


if __name__ == "__main__":
    main()
