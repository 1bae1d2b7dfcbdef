from __future__ import annotations

from pathlib import Path

import colorama
import typer
from colorama import Fore, Style

from lyric_engine.config import KEYS, load_config, save_config_value
from lyric_engine.converter import detect_format, generate, parse
from lyric_engine.errors import LyricEngineError
from lyric_engine.formats import FormatKind
from lyric_engine.logging_setup import setup_logging
from lyric_engine.merge import merge_auxiliary
from lyric_engine.options import GenerateConfig, LineEnding, PipelineConfig
from lyric_engine.pipeline import ProcessorKind, run_pipeline
from lyric_engine.processors.batch import ConvertJob, convert_batch
from lyric_engine.util.text import word_count
from lyric_engine.util.timing import Resolution


app = typer.Typer(no_args_is_help=True, add_completion=False)


def _format(name: str | None, what: str) -> FormatKind | None:
    if name is None:
        return None
    kind = FormatKind.from_string(name)
    if kind is None:
        raise typer.BadParameter(f"unknown {what} format {name!r}; see `lyric-engine formats`")
    return kind


def _fail(e: LyricEngineError) -> typer.Exit:
    typer.echo(f"Error [{e.kind}]: {e.message}", err=True)
    return typer.Exit(code=1)


def _language_of(path: Path) -> tuple[str, str] | None:
    """`song.zh-Hans.lrc` -> ("song", "zh-Hans")."""
    stem, dot, lang = path.stem.rpartition(".")
    if not dot or not stem or not lang:
        return None
    return stem, lang


def _pipeline_config(smoothing_ms: int | None, chinese: str | None, infer_agents: bool, strip_metadata: bool) -> PipelineConfig:
    cfg = load_config()
    return PipelineConfig(
        smoothing_threshold_ms=cfg.smoothing_ms if smoothing_ms is None else smoothing_ms,
        chinese_variant=chinese or cfg.chinese_variant,
        infer_agents=infer_agents,
        strip_metadata_lines=strip_metadata,
    )


def _generate_config(resolution: str | None, crlf: bool, lossy: bool) -> GenerateConfig:
    cfg = load_config()
    return GenerateConfig(
        timestamp_resolution=Resolution(resolution.lower()) if resolution else cfg.resolution,
        line_ending=LineEnding.CRLF if crlf else cfg.line_ending,
        allow_lossy=lossy,
    )


@app.command()
def formats():
    """List supported formats."""
    for kind in FormatKind:
        typer.echo(f"{kind.value:<6} {kind.display_name}")


@app.command()
def detect(path: Path):
    """Guess the format of a lyric file."""
    kind = detect_format(path.read_bytes())
    if kind is None:
        typer.echo("unknown")
        raise typer.Exit(code=1)
    typer.echo(kind.value)


@app.command("parse")
def parse_cmd(
    path: Path,
    fmt: str | None = typer.Option(None, "--format", "-f", help="Source format (default: detect)"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Parse a lyric file and print stats."""
    setup_logging(debug)
    data = path.read_bytes()
    kind = _format(fmt, "source") or detect_format(data)
    if kind is None:
        typer.echo("Error: cannot detect the format, pass --format", err=True)
        raise typer.Exit(code=1)
    try:
        doc = parse(kind, data)
    except LyricEngineError as e:
        raise _fail(e) from e
    typer.echo(f"format={kind.value}")
    typer.echo(f"lines_total={len(doc.lines)}")
    typer.echo(f"words={sum(word_count(line.main_text) for line in doc.lines)}")
    typer.echo(f"syllable_timed={int(doc.is_syllable_timed)}")
    typer.echo(f"has_background={int(doc.has_background)}")
    typer.echo(f"agents={','.join(sorted(doc.agents))}")
    typer.echo(f"translations={','.join(doc.translation_languages)}")
    typer.echo(f"romanizations={','.join(doc.romanization_schemes)}")
    typer.echo(f"metadata_keys={','.join(doc.metadata)}")
    typer.echo(f"warnings={len(doc.warnings)}")
    for w in doc.warnings:
        typer.echo(f"  {w}", err=True)


@app.command()
def convert(
    path: Path,
    to: str = typer.Option(..., "--to", "-t", help="Target format"),
    src: str | None = typer.Option(None, "--from", help="Source format (default: detect)"),
    out: Path | None = typer.Option(None, "--out", "-o", help="Output file (default: stdout)"),
    translation: list[Path] = typer.Option([], "--translation", help="Translation file named name.<lang>.ext"),
    smoothing_ms: int | None = typer.Option(None, "--smoothing-ms", help="Close syllable gaps up to this size"),
    chinese: str | None = typer.Option(None, "--chinese", help="Convert Chinese to zh-Hans, zh-Hant, zh-Hant-TW, ..."),
    infer_agents: bool = typer.Option(False, "--infer-agents", help="Recognize singers from cues and overlaps"),
    strip_metadata: bool = typer.Option(False, "--strip-metadata", help="Move credit lines into metadata"),
    resolution: str | None = typer.Option(None, "--resolution", help="ms|cs|ds"),
    crlf: bool = typer.Option(False, "--crlf", help="Write CRLF line endings"),
    lossy: bool = typer.Option(False, "--lossy", help="Drop what the target cannot represent"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Convert a lyric file to another format."""
    setup_logging(debug)
    target = _format(to, "target")
    data = path.read_bytes()
    source = _format(src, "source") or detect_format(data)
    if source is None:
        typer.echo("Error: cannot detect the format, pass --from", err=True)
        raise typer.Exit(code=1)
    try:
        doc = parse(source, data)
        for aux_path in translation:
            named = _language_of(aux_path)
            lang = named[1] if named else "und"
            aux_data = aux_path.read_bytes()
            aux_kind = detect_format(aux_data) or FormatKind.LRC
            doc = merge_auxiliary(doc, parse(aux_kind, aux_data), language=lang)
        doc = run_pipeline(doc, load_config().stages, _pipeline_config(smoothing_ms, chinese, infer_agents, strip_metadata))
        output = generate(target, doc, _generate_config(resolution, crlf, lossy))
    except LyricEngineError as e:
        raise _fail(e) from e

    if out:
        out.write_bytes(output)
    else:
        typer.echo(output.decode("utf-8", errors="replace"), nl=False)


@app.command()
def batch(
    src_dir: Path,
    out_dir: Path,
    to: str = typer.Option(..., "--to", "-t", help="Target format"),
    smoothing_ms: int | None = typer.Option(None, "--smoothing-ms", help="Close syllable gaps up to this size"),
    chinese: str | None = typer.Option(None, "--chinese", help="Chinese variant to convert to"),
    infer_agents: bool = typer.Option(False, "--infer-agents"),
    strip_metadata: bool = typer.Option(False, "--strip-metadata"),
    workers: int | None = typer.Option(None, "--workers", "-j", help="Worker threads"),
    lossy: bool = typer.Option(False, "--lossy"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """
    Convert every lyric file in a directory.

    Files named `<name>.<lang>.<ext>` next to `<name>.<ext>` are merged in as
    translations in that language.
    """
    setup_logging(debug)
    colorama.init()
    target = _format(to, "target")
    files = sorted(p for p in src_dir.iterdir() if p.is_file())
    stems = {p.stem for p in files}

    mains: list[Path] = []
    aux: dict[str, list[tuple[Path, str]]] = {}
    for p in files:
        named = _language_of(p)
        if named and named[0] in stems:
            aux.setdefault(named[0], []).append((p, named[1]))
        else:
            mains.append(p)
    if not mains:
        typer.echo(f"No lyric files in {src_dir}", err=True)
        raise typer.Exit(code=1)

    jobs = [
        ConvertJob(
            data=p.read_bytes(),
            target=target,
            translations=tuple((a.read_bytes(), lang) for a, lang in aux.get(p.stem, [])),
        )
        for p in mains
    ]
    cfg = load_config()
    results = convert_batch(
        jobs,
        cfg.stages,
        _pipeline_config(smoothing_ms, chinese, infer_agents, strip_metadata),
        _generate_config(None, False, lossy),
        workers=workers or cfg.workers,
    )

    out_dir.mkdir(parents=True, exist_ok=True)
    failed = 0
    for p, result in zip(mains, results):
        if result.ok:
            dest = out_dir / f"{p.stem}.{target.extension}"
            dest.write_bytes(result.output)
            typer.echo(f"{Fore.GREEN}ok{Style.RESET_ALL}    {p.name} -> {dest.name}")
        else:
            failed += 1
            typer.echo(f"{Fore.RED}fail{Style.RESET_ALL}  {p.name} [{result.failed_stage}] {result.error.message}")
    typer.echo(f"{len(results) - failed} converted, {failed} failed")
    if failed:
        raise typer.Exit(code=1)


@app.command()
def config(
    key: str | None = typer.Argument(None, help=f"One of: {', '.join(KEYS)}"),
    value: str | None = typer.Argument(None, help="New value (empty string removes the key)"),
):
    """Show the configuration, or set one key."""
    if key is None:
        cfg = load_config()
        typer.echo(f"config_dir={cfg.config_dir}")
        typer.echo(f"smoothing_ms={cfg.smoothing_ms}")
        typer.echo(f"chinese_variant={cfg.chinese_variant or ''}")
        typer.echo(f"resolution={cfg.resolution.value}")
        typer.echo(f"line_ending={cfg.line_ending.value}")
        typer.echo(f"workers={cfg.workers or ''}")
        typer.echo(f"stages={','.join(s.value for s in cfg.stages)}")
        return
    if value is None:
        raise typer.BadParameter("a value is required when a key is given")
    if key == "stages" and value:
        try:
            ProcessorKind.parse_list(value)
        except ValueError as e:
            raise typer.BadParameter(str(e)) from e
    try:
        path = save_config_value(key, value)
    except KeyError as e:
        raise typer.BadParameter(e.args[0]) from e
    typer.echo(f"Saved {key} to {path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
