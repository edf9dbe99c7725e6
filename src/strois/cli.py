"""Command-line interface for strois.

Commands:
    - ls: List the objects under a prefix
    - cat: Print an object
    - rm: Delete objects
    - write: Write an argument or stdin to an object
    - bucket create / bucket delete: Manage the bucket itself

Connection options default to the ``STROIS_*`` environment variables and
then to a local MinIO (``http://localhost:9000``, ``minioadmin``).
"""

import sys
from dataclasses import dataclass
from typing import Annotated, Optional

import typer

from . import __version__
from .core import get_logger, set_log_level, settings
from .core.exceptions import PayloadNotUtf8Error, StroisError
from .objectstorage import Bucket, Client, S3ErrorCode, StoreError

logger = get_logger(__name__)

app = typer.Typer(
    name="strois",
    help="CLI around S3-compatible object stores.",
    no_args_is_help=True,
)
bucket_app = typer.Typer(help="Commands related to the bucket.", no_args_is_help=True)
app.add_typer(bucket_app, name="bucket")

LOG_LEVELS = ["WARNING", "INFO", "DEBUG"]


@dataclass(frozen=True)
class CliOptions:
    """Connection options shared by every command."""

    endpoint_url: str
    bucket: str
    region: str
    key: str
    secret: str
    token: Optional[str]
    virtual_host_style: bool


def version_callback(value: bool) -> None:
    """Display version information."""
    if value:
        typer.echo(f"strois {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    endpoint_url: Annotated[
        str, typer.Option("--endpoint-url", "-a", help="Address of the S3 server.")
    ] = settings.endpoint_url,
    bucket: Annotated[
        str, typer.Option("--bucket", "-b", help="Bucket to operate on.")
    ] = settings.bucket,
    region: Annotated[
        str, typer.Option("--region", help="Region used to sign requests.")
    ] = settings.region,
    key: Annotated[str, typer.Option("--key", help="Access key.")] = settings.access_key,
    secret: Annotated[
        str, typer.Option("--secret", help="Secret key.")
    ] = settings.secret_key,
    token: Annotated[
        Optional[str], typer.Option("--token", help="Security token.")
    ] = settings.session_token,
    virtual_host_style: Annotated[
        bool,
        typer.Option(
            "--virtual-host-style",
            help="Use http://bucket.host/ URLs instead of http://host/bucket/. "
            "Does not work with localhost.",
        ),
    ] = settings.addressing_style == "virtual",
    verbose: Annotated[
        int, typer.Option("--verbose", "-v", count=True, help="Increase verbosity.")
    ] = 0,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, help="Show version."),
    ] = None,
) -> None:
    """
    strois: read and write objects of an S3-compatible store.
    """
    if verbose:
        set_log_level(LOG_LEVELS[min(verbose, len(LOG_LEVELS) - 1)])

    ctx.obj = CliOptions(
        endpoint_url=endpoint_url,
        bucket=bucket,
        region=region,
        key=key,
        secret=secret,
        token=token,
        virtual_host_style=virtual_host_style,
    )


def _open_bucket(options: CliOptions) -> Bucket:
    """Build the client and bucket described by the global options."""
    client = Client.from_options(
        endpoint_url=options.endpoint_url,
        region=options.region,
        access_key=options.key,
        secret_key=options.secret,
        session_token=options.token,
        addressing_style="virtual" if options.virtual_host_style else "path",
    )
    return client.bucket(options.bucket)


def _sanitize_path(path: str) -> str:
    if path.startswith("/"):
        logger.warning("Invalid path, trimming the leading '/'", path=path)
        return path.lstrip("/")
    return path


def _fail(error: Exception) -> typer.Exit:
    typer.echo(f"Error: {error}", err=True)
    return typer.Exit(1)


@app.command("ls")
def ls_cmd(
    ctx: typer.Context,
    path: Annotated[
        Optional[str], typer.Argument(help="List the objects under this prefix.")
    ] = None,
) -> None:
    """
    List directory contents.
    """
    try:
        bucket = _open_bucket(ctx.obj)
        for entry in bucket.list_objects(_sanitize_path(path or "")):
            typer.echo(entry.key)
    except StroisError as e:
        raise _fail(e)


@app.command("cat")
def cat_cmd(
    ctx: typer.Context,
    file: Annotated[str, typer.Argument(help="Path of the object to print.")],
    raw: Annotated[
        bool,
        typer.Option(
            "--raw", "-r", help="Send the raw bytes to stdout without any validation."
        ),
    ] = False,
) -> None:
    """
    Print an object.
    """
    file = _sanitize_path(file)
    try:
        bucket = _open_bucket(ctx.obj)
        if raw or not sys.stdout.isatty():
            stdout = typer.get_binary_stream("stdout")
            bucket.get_object_to_writer(file, stdout)
            stdout.flush()
        else:
            typer.echo(bucket.get_object_string(file))
    except PayloadNotUtf8Error as e:
        typer.echo(
            f"Error: {e}. Object contains non utf-8 characters; "
            "print it with the `--raw` flag.",
            err=True,
        )
        raise typer.Exit(1)
    except StroisError as e:
        raise _fail(e)


@app.command("rm")
def rm_cmd(
    ctx: typer.Context,
    paths: Annotated[list[str], typer.Argument(help="Paths of the objects to remove.")],
) -> None:
    """
    Remove objects. A failure on one path does not stop the others.
    """
    try:
        bucket = _open_bucket(ctx.obj)
    except StroisError as e:
        raise _fail(e)

    failed = 0
    for path in paths:
        try:
            bucket.delete_object(_sanitize_path(path))
        except StroisError as e:
            failed += 1
            logger.error("Could not remove object", path=path, error=str(e))
            typer.echo(f"`{path}`: {e}", err=True)

    if failed:
        raise typer.Exit(1)


@app.command("write")
def write_cmd(
    ctx: typer.Context,
    path: Annotated[str, typer.Argument(help="Path of the object to write.")],
    content: Annotated[
        Optional[str], typer.Argument(help="Content to write; stdin when omitted.")
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Without content and without stdin, write an empty object.",
        ),
    ] = False,
) -> None:
    """
    Write the content of stdin or argv to the specified path.
    """
    path = _sanitize_path(path)
    try:
        bucket = _open_bucket(ctx.obj)
        if content is not None:
            bucket.put_object(path, content)
        elif not sys.stdin.isatty():
            bucket.put_object_multipart(path, typer.get_binary_stream("stdin"))
        elif force:
            bucket.put_object(path, b"")
        else:
            typer.echo(
                "Error: Did you forget to pipe something in the command? To reset "
                "the content of the object use `--force` or `-f`.",
                err=True,
            )
            raise typer.Exit(1)
    except StroisError as e:
        raise _fail(e)


@bucket_app.command("create")
def bucket_create_cmd(
    ctx: typer.Context,
    ignore_if_exists: Annotated[
        bool,
        typer.Option(
            "--ignore-if-exists",
            "-i",
            help="Do not return an error if the bucket already exists.",
        ),
    ] = False,
) -> None:
    """
    Create the bucket.
    """
    try:
        _open_bucket(ctx.obj).create()
    except StoreError as e:
        if ignore_if_exists and e.code in (
            S3ErrorCode.BUCKET_ALREADY_EXISTS,
            S3ErrorCode.BUCKET_ALREADY_OWNED_BY_YOU,
        ):
            logger.info("Bucket already exists", bucket=ctx.obj.bucket)
            return
        raise _fail(e)
    except StroisError as e:
        raise _fail(e)


@bucket_app.command("delete")
def bucket_delete_cmd(
    ctx: typer.Context,
    ignore_if_does_not_exist: Annotated[
        bool,
        typer.Option(
            "--ignore-if-does-not-exist",
            "-i",
            help="Do not return an error if the bucket does not exist.",
        ),
    ] = False,
) -> None:
    """
    Delete the bucket.
    """
    try:
        _open_bucket(ctx.obj).delete()
    except StoreError as e:
        if ignore_if_does_not_exist and e.code is S3ErrorCode.NO_SUCH_BUCKET:
            logger.info("Bucket does not exist", bucket=ctx.obj.bucket)
            return
        raise _fail(e)
    except StroisError as e:
        raise _fail(e)


if __name__ == "__main__":
    app()
