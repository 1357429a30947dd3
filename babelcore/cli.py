# babelcore/cli.py
import json
import logging
import sys
import time

import click
from dotenv import load_dotenv

from babelcore.batch import BatchAction, BatchStatus
from babelcore.factory import build_orchestrator
from babelcore.orchestrator import InvalidTransition, ProjectNotFound
from babelcore.processor.chunker import ChunkingError
from babelcore.processor.intake import UnsupportedFormatError, read_source_file
from babelcore.storage.models import ProjectStatus


# Carga .env una sola vez, antes que cualquier otra cosa
load_dotenv()

_CHUNK_SIZES = ["small", "standard", "large"]


# ------------------------------------------------------------------
# Grupo raíz
# ------------------------------------------------------------------

@click.group()
@click.version_option(package_name="babelcore")
@click.option("--db", "db_path", envvar="BABELCORE_DB_PATH", default=None,
              help="Ruta de la base SQLite (default: ~/.babelcore/babelcore.db)")
@click.option("--config", "config_path", envvar="BABELCORE_CONFIG_PATH", default=None,
              help="Ruta del config.yaml (default: ~/.babelcore/config.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Logging DEBUG en stderr")
@click.pass_context
def main(ctx, db_path, config_path, verbose):
    """
    babelcore: orquestación de proyectos de traducción.

    Divide documentos en chunks, los traduce en paralelo con failover
    entre modelos y sigue el progreso de cada proyecto.
    """
    logging.basicConfig(
        level  = logging.DEBUG if verbose else logging.WARNING,
        format = "%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db_path
    ctx.obj["config_path"] = config_path


# ------------------------------------------------------------------
# babelcore create / run
# ------------------------------------------------------------------

_file_option = click.option(
    "--file", "-f", "files",
    required = True,
    multiple = True,
    type     = click.Path(exists=False),   # validamos nosotros para mejor mensaje
    help     = "Archivo a traducir (.txt, .md, .srt, .vtt). Repetible.",
)
_to_option = click.option(
    "--to", "target_langs",
    required = True,
    multiple = True,
    metavar  = "LANG",
    help     = "Idioma destino (ej: es, fr). Repetible.",
)
_from_option = click.option(
    "--from", "source_lang",
    default      = "auto",
    show_default = True,
    metavar      = "LANG",
    help         = "Idioma de origen. 'auto' lo detecta al iniciar.",
)
_name_option = click.option("--name", default=None, help="Nombre del proyecto")
_method_option = click.option(
    "--method", "extraction_method",
    default      = "ai",
    show_default = True,
    type         = click.Choice(["traditional", "ai"], case_sensitive=False),
    help         = "Método de extracción con el que se obtuvo el texto (informativo)",
)
_chunk_size_option = click.option(
    "--chunk-size",
    default      = "standard",
    show_default = True,
    type         = click.Choice(_CHUNK_SIZES, case_sensitive=False),
    help         = "Tamaño de los chunks: small (400), standard (1000), large (2000 palabras)",
)


@main.command()
@_file_option
@_to_option
@_from_option
@_name_option
@_method_option
@_chunk_size_option
@click.pass_context
def create(ctx, files, target_langs, source_lang, name, extraction_method, chunk_size):
    """Crea un proyecto y lo divide en chunks, sin traducir todavía."""
    project = _create(ctx, files, target_langs, source_lang, name, extraction_method, chunk_size,
                      require_models=False)
    click.echo(project.id)


@main.command()
@_file_option
@_to_option
@_from_option
@_name_option
@_method_option
@_chunk_size_option
@click.option("--out-dir", type=click.Path(file_okay=False), default=None,
              help="Directorio de salida (default: ~/.babelcore/output)")
@click.pass_context
def run(ctx, files, target_langs, source_lang, name, extraction_method, chunk_size, out_dir):
    """Crea un proyecto, lo traduce siguiendo el progreso y exporta el resultado."""
    project = _create(ctx, files, target_langs, source_lang, name, extraction_method, chunk_size,
                      require_models=True, output_dir=out_dir)
    orchestrator = ctx.obj["orchestrator"]

    _start_and_follow(orchestrator, project.id)

    for lang in project.target_langs:
        path = orchestrator.export(project.id, lang)
        click.echo(f"[babelcore]   Output {lang:<6}: {path}")


# ------------------------------------------------------------------
# babelcore start / retry / pause / cancel / delete
# ------------------------------------------------------------------

@main.command()
@click.argument("project_id")
@click.pass_context
def start(ctx, project_id):
    """Inicia o reanuda un proyecto y sigue su progreso hasta que termine."""
    orchestrator = _build(ctx, require_models=True)
    _start_and_follow(orchestrator, project_id)


@main.command()
@click.argument("project_id")
@click.pass_context
def retry(ctx, project_id):
    """Reintenta solo los chunks fallidos de un proyecto parcial."""
    orchestrator = _build(ctx, require_models=True)
    _start_and_follow(orchestrator, project_id, action="retry_failed")


@main.command()
@click.argument("project_id")
@click.pass_context
def pause(ctx, project_id):
    """Pausa un proyecto en proceso (lo que está en vuelo termina)."""
    snapshot = _control(ctx, "pause", project_id)
    click.echo(f"[babelcore] Proyecto {project_id}: {snapshot.status.value}")


@main.command()
@click.argument("project_id")
@click.pass_context
def cancel(ctx, project_id):
    """Cancela un proyecto que todavía no terminó."""
    snapshot = _control(ctx, "cancel", project_id)
    click.echo(f"[babelcore] Proyecto {project_id}: {snapshot.status.value}")


@main.command()
@click.argument("project_id")
@click.option("--yes", is_flag=True, help="No pedir confirmación")
@click.pass_context
def delete(ctx, project_id, yes):
    """Elimina un proyecto y todos sus chunks."""
    if not yes and not click.confirm(f"¿Eliminar el proyecto {project_id}?", default=False):
        click.echo("[babelcore] Sin cambios.")
        return
    _control(ctx, "delete", project_id)
    click.echo(f"[babelcore] Proyecto {project_id} eliminado")


# ------------------------------------------------------------------
# babelcore status / list / watch / export
# ------------------------------------------------------------------

@main.command()
@click.argument("project_id")
@click.option("--json", "as_json", is_flag=True, help="Imprime el snapshot como JSON")
@click.pass_context
def status(ctx, project_id, as_json):
    """Muestra el estado y el progreso de un proyecto."""
    orchestrator = _build(ctx, require_models=False)
    try:
        project = orchestrator.get_project(project_id)
    except ProjectNotFound as e:
        _abort(str(e))
    snapshot = orchestrator.snapshot(project_id)

    if as_json:
        click.echo(json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2))
        return

    click.echo(f"[babelcore] {project.name} ({project.id})")
    click.echo(f"[babelcore]   Idiomas  : {project.source_lang} → {', '.join(project.target_langs)}")
    click.echo(f"[babelcore]   Estado   : {_styled_status(snapshot.status)}")
    click.echo(f"[babelcore]   Progreso : {snapshot.completed_chunks}/{snapshot.total_chunks} "
               f"({snapshot.progress:.0%})")
    if snapshot.failed_chunks:
        click.echo(click.style(f"[babelcore]   Fallidos : {snapshot.failed_chunks}", fg="yellow"))
    if project.last_error:
        click.echo(click.style(f"[babelcore]   Error    : {project.last_error}", fg="red"))


@main.command("list")
@click.option(
    "--status", "status_filter",
    default = None,
    type    = click.Choice([s.value for s in ProjectStatus], case_sensitive=False),
    help    = "Filtra por estado",
)
@click.pass_context
def list_projects(ctx, status_filter):
    """Lista los proyectos."""
    orchestrator = _build(ctx, require_models=False)
    projects = orchestrator.list_projects(
        status=ProjectStatus(status_filter.lower()) if status_filter else None,
    )
    if not projects:
        click.echo("[babelcore] No hay proyectos.")
        return
    for project in projects:
        click.echo(
            f"{project.id}  {project.status.value:<10}  "
            f"{project.completed_chunks:>4}/{project.total_chunks:<4}  {project.name}"
        )


@main.command()
@click.argument("project_id")
@click.option("--interval", default=1.0, show_default=True, type=float,
              help="Segundos entre lecturas")
@click.pass_context
def watch(ctx, project_id, interval):
    """
    Sigue el progreso de un proyecto (aunque lo ejecute otro proceso)
    hasta que deje de avanzar solo.
    """
    orchestrator = _build(ctx, require_models=False)
    last = None
    try:
        while True:
            try:
                snapshot = orchestrator.snapshot(project_id)
            except ProjectNotFound as e:
                _abort(str(e))
            view = (snapshot.status, snapshot.completed_chunks, snapshot.failed_chunks)
            if view != last:
                _print_progress(snapshot)
                last = view
            if snapshot.status.is_settled or snapshot.status in (ProjectStatus.READY, ProjectStatus.PAUSED):
                break
            time.sleep(interval)
    except KeyboardInterrupt:
        click.echo("\n[babelcore] Seguimiento interrumpido.")


@main.command()
@click.argument("project_id")
@click.option("--lang", required=True, metavar="LANG", help="Idioma destino a exportar")
@click.option("--out", "output_path", type=click.Path(dir_okay=False), default=None,
              help="Archivo de salida (default: ~/.babelcore/output/<nombre>_<lang>.txt)")
@click.pass_context
def export(ctx, project_id, lang, output_path):
    """Reconstruye el documento traducido de un idioma."""
    orchestrator = _build(ctx, require_models=False)
    try:
        path = orchestrator.export(project_id, lang, output_path)
    except (ProjectNotFound, ValueError) as e:
        _abort(str(e))
    click.echo(f"[babelcore] Output: {path}")


# ------------------------------------------------------------------
# babelcore batch
# ------------------------------------------------------------------

@main.command()
@click.argument("action", type=click.Choice([a.value for a in BatchAction]))
@click.argument("project_ids", nargs=-1, required=True)
@click.pass_context
def batch(ctx, action, project_ids):
    """Aplica una acción a varios proyectos. Un fallo no detiene a los demás."""
    action = BatchAction(action)
    translates = action in (BatchAction.START, BatchAction.RETRY_FAILED)
    orchestrator = _build(ctx, require_models=translates)

    operation = orchestrator.apply_batch(action, project_ids)
    for pid in operation.project_ids:
        outcome = operation.results[pid]
        if outcome.ok:
            click.echo(f"[babelcore] ✓ {pid}")
        else:
            click.echo(click.style(f"[babelcore] ✗ {pid}: {outcome.error_kind}: {outcome.message}",
                                   fg="red"), err=True)

    if translates and operation.succeeded:
        try:
            for pid in operation.succeeded:
                orchestrator.wait(pid)
                _print_progress(orchestrator.snapshot(pid))
        except KeyboardInterrupt:
            _interrupted(orchestrator)

    if operation.status is BatchStatus.PARTIALLY_FAILED:
        _error(f"{len(operation.failures)} de {len(operation.project_ids)} proyectos fallaron")
        sys.exit(1)


# ------------------------------------------------------------------
# Helpers de ejecución
# ------------------------------------------------------------------

def _build(ctx, require_models: bool, chunk_size: str = "standard", output_dir=None):
    try:
        orchestrator = build_orchestrator(
            db_path        = ctx.obj.get("db_path"),
            config_path    = ctx.obj.get("config_path"),
            output_dir     = output_dir,
            chunk_size     = chunk_size,
            require_models = require_models,
        )
    except (FileNotFoundError, RuntimeError, ValueError) as e:
        _abort(str(e))
    ctx.obj["orchestrator"] = orchestrator
    return orchestrator


def _create(ctx, files, target_langs, source_lang, name, extraction_method, chunk_size,
            require_models: bool, output_dir=None):
    for lang in (source_lang, *target_langs):
        _validate_lang(lang, "--from/--to")
    if source_lang.lower() != "auto" and source_lang.lower() in {t.lower() for t in target_langs}:
        _abort("El idioma de origen no puede ser también destino.")

    sources = []
    for path in files:
        try:
            sources.append(read_source_file(path))
        except (FileNotFoundError, UnsupportedFormatError) as e:
            _abort(str(e))

    orchestrator = _build(ctx, require_models=require_models, chunk_size=chunk_size,
                          output_dir=output_dir)
    project = orchestrator.create_project(
        sources,
        target_langs      = [t.lower() for t in target_langs],
        source_lang       = source_lang.lower(),
        name              = name,
        extraction_method = extraction_method.lower(),
    )

    if project.status is ProjectStatus.ERROR:
        _error(f"No se pudo dividir el documento: {project.last_error}")
        sys.exit(1)

    click.echo(
        f"[babelcore] Proyecto '{project.name}': {len(project.chunks)} chunks "
        f"({', '.join(project.target_langs)})",
        err=True,
    )
    return project


def _start_and_follow(orchestrator, project_id: str, action: str = "start") -> None:
    try:
        getattr(orchestrator, action)(project_id)
    except ProjectNotFound as e:
        _abort(str(e))
    except InvalidTransition as e:
        _abort(str(e))
    except ChunkingError as e:
        _error(f"El proyecto está en error: {e}")
        sys.exit(1)

    try:
        _follow(orchestrator, project_id)
    except KeyboardInterrupt:
        _interrupted(orchestrator, project_id)

    _print_summary(orchestrator.snapshot(project_id))


def _follow(orchestrator, project_id: str) -> None:
    """Imprime los snapshots del feed hasta que el proyecto deje de avanzar en este proceso."""
    subscription = orchestrator.subscribe(project_id)
    try:
        while True:
            snapshot = subscription.get(timeout=0.5)
            if snapshot is not None:
                _print_progress(snapshot)
                if snapshot.status.is_settled:
                    return
            if subscription.closed or orchestrator.wait(project_id, timeout=0):
                return
    finally:
        subscription.close()


def _control(ctx, action: str, project_id: str):
    orchestrator = _build(ctx, require_models=False)
    try:
        return getattr(orchestrator, action)(project_id)
    except (ProjectNotFound, InvalidTransition) as e:
        _abort(str(e))


def _interrupted(orchestrator, project_id: str | None = None) -> None:
    orchestrator.shutdown(wait=False)
    hint = f"babelcore start {project_id}" if project_id else "babelcore batch start ..."
    click.echo(
        f"\n[babelcore] Proceso interrumpido. "
        f"Ejecuta '{hint}' para reanudarlo desde donde quedó."
    )
    sys.exit(0)


# ------------------------------------------------------------------
# Helpers de validación
# ------------------------------------------------------------------

def _validate_lang(code: str, option: str) -> None:
    """Valida que el código de idioma sea razonable."""
    code = code.strip()

    if not code:
        _abort(f"{option} no puede estar vacío.")

    if not code.replace("-", "").isalpha():
        _abort(
            f"{option} contiene caracteres inválidos: '{code}'\n"
            f"Ejemplos válidos: en, es, ja, fr, pt-br"
        )

    if len(code) > 10:
        _abort(f"{option}: código de idioma demasiado largo: '{code}'")


# ------------------------------------------------------------------
# Helpers de output
# ------------------------------------------------------------------

_STATUS_COLORS = {
    ProjectStatus.COMPLETED: "green",
    ProjectStatus.PARTIAL:   "yellow",
    ProjectStatus.PAUSED:    "yellow",
    ProjectStatus.CANCELLED: "red",
    ProjectStatus.ERROR:     "red",
}


def _styled_status(status: ProjectStatus) -> str:
    color = _STATUS_COLORS.get(status)
    return click.style(status.value, fg=color) if color else status.value


def _print_progress(snapshot) -> None:
    line = (
        f"[babelcore] {snapshot.completed_chunks}/{snapshot.total_chunks} "
        f"({snapshot.progress:.0%}) {snapshot.status.value}"
    )
    if snapshot.failed_chunks:
        line += f", {snapshot.failed_chunks} fallidos"
    click.echo(line)


def _print_summary(snapshot) -> None:
    """Imprime el resumen final de la ejecución."""
    click.echo("")
    click.echo("─" * 50)
    if snapshot.status is ProjectStatus.COMPLETED:
        click.echo("[babelcore] ✓ Proyecto completado")
    elif snapshot.status is ProjectStatus.PARTIAL:
        click.echo(click.style("[babelcore] ⚠ Proyecto parcial: usa 'babelcore retry'", fg="yellow"))
    else:
        click.echo(f"[babelcore] Proyecto {snapshot.status.value}")
    click.echo(f"[babelcore]   Total chunks : {snapshot.total_chunks}")
    click.echo(f"[babelcore]   Traducidos   : {snapshot.completed_chunks}")
    if snapshot.failed_chunks:
        click.echo(click.style(f"[babelcore]   Fallidos     : {snapshot.failed_chunks}", fg="yellow"))
    click.echo("─" * 50)


def _abort(message: str) -> None:
    """Error de validación: culpa del usuario."""
    click.echo(click.style(f"[babelcore] Error: {message}", fg="red"), err=True)
    sys.exit(1)


def _error(message: str) -> None:
    """Error de sistema: no es culpa del usuario."""
    click.echo(click.style(f"[babelcore] {message}", fg="red"), err=True)
