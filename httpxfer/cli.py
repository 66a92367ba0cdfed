"""Command line interface for httpxfer."""

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import BarColumn, DownloadColumn, Progress, SpinnerColumn, TextColumn, TransferSpeedColumn
from rich.table import Table

from .config import Config, load_config
from .errors import TransferError
from .http_client import HttpClient, ResponseHandle, client_from_config
from .log import configure_logging
from .utils import format_bytes, parse_pairs

console = Console()
app = typer.Typer(help="httpxfer - HTTP transfer client")

ConfigOption = typer.Option(None, "--config", "-c", help="Configuration file path")
InsecureOption = typer.Option(False, "--insecure", "-k", help="Skip TLS certificate verification")
CacertOption = typer.Option(None, "--cacert", help="PEM bundle of trusted certificates")
Http3Option = typer.Option(False, "--http3", help="Prefer the multiplexed protocol, falling back per host")


def _load(
    config_path: Optional[str], insecure: bool, cacert: Optional[str], http3: bool
) -> Config:
    config = load_config(config_path)
    if insecure:
        config.http.insecure_skip_verify = True
    if cacert:
        config.http.cert_file = cacert
    if http3:
        config.http.enable_http3 = True
    configure_logging(config.logging)
    return config


def _open_client(config: Config) -> HttpClient:
    try:
        return client_from_config(config)
    except TransferError as e:
        console.print(f"[red]✗ Client setup failed: {e}[/red]")
        raise typer.Exit(1)


def _pairs(items: Optional[List[str]], separator: str = '=') -> list:
    try:
        return parse_pairs(items, separator)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def _show_response(response: ResponseHandle, show_body: bool = True) -> None:
    style = "green" if response.is_success else "yellow" if response.status_code < 400 else "red"
    console.print(f"[bold {style}]{response.http_version} {response.status_code}[/bold {style}] {response.url}")
    
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Header", style="cyan")
    table.add_column("Value")
    for name, value in response.headers.multi_items():
        table.add_row(name, value)
    console.print(table)
    
    if show_body:
        console.print(response.text(), markup=False, highlight=False)


@app.command()
def get(
    url: str = typer.Argument(..., help="URL to fetch"),
    header: Optional[List[str]] = typer.Option(None, "--header", "-H", help="Header as 'Name: value'"),
    cookie: Optional[List[str]] = typer.Option(None, "--cookie", "-b", help="Cookie as 'name=value'"),
    config_path: Optional[str] = ConfigOption,
    insecure: bool = InsecureOption,
    cacert: Optional[str] = CacertOption,
    http3: bool = Http3Option,
):
    """Send a GET request."""
    config = _load(config_path, insecure, cacert, http3)
    headers = _pairs(header, ':')
    cookies = _pairs(cookie)
    with _open_client(config) as client:
        try:
            with client.get(url, headers=headers, cookies=cookies) as response:
                _show_response(response)
        except TransferError as e:
            console.print(f"[red]✗ GET failed: {e}[/red]")
            raise typer.Exit(1)


@app.command()
def post(
    url: str = typer.Argument(..., help="URL to post to"),
    data: Optional[List[str]] = typer.Option(None, "--data", "-d", help="Form field as 'key=value'"),
    cookie: Optional[List[str]] = typer.Option(None, "--cookie", "-b", help="Cookie as 'name=value'"),
    no_redirect: bool = typer.Option(False, "--no-redirect", help="Return redirect responses instead of following them"),
    config_path: Optional[str] = ConfigOption,
    insecure: bool = InsecureOption,
    cacert: Optional[str] = CacertOption,
    http3: bool = Http3Option,
):
    """Post an urlencoded form."""
    config = _load(config_path, insecure, cacert, http3)
    form = _pairs(data)
    cookies = _pairs(cookie)
    if no_redirect and cookies:
        raise typer.BadParameter("--cookie cannot be combined with --no-redirect")
    
    with _open_client(config) as client:
        try:
            if no_redirect:
                response = client.post_without_redirect(url, form)
            else:
                response = client.post(url, form, cookies=cookies)
            with response:
                _show_response(response)
        except TransferError as e:
            console.print(f"[red]✗ POST failed: {e}[/red]")
            raise typer.Exit(1)


@app.command()
def upload(
    url: str = typer.Argument(..., help="URL to upload to"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="File to upload"),
    field: str = typer.Option("file", "--field", "-f", help="Multipart field name of the file"),
    data: Optional[List[str]] = typer.Option(None, "--data", "-d", help="Form field as 'key=value'"),
    cookie: Optional[List[str]] = typer.Option(None, "--cookie", "-b", help="Cookie as 'name=value'"),
    config_path: Optional[str] = ConfigOption,
    insecure: bool = InsecureOption,
    cacert: Optional[str] = CacertOption,
    http3: bool = Http3Option,
):
    """Upload a file as a multipart form."""
    config = _load(config_path, insecure, cacert, http3)
    form = _pairs(data)
    cookies = _pairs(cookie)
    chunk = file.read_bytes()
    
    with _open_client(config) as client:
        try:
            with client.post_file_chunk(url, field, file.name, form, chunk, cookies=cookies) as response:
                console.print(f"Uploaded {file.name} ({format_bytes(len(chunk))})")
                _show_response(response)
        except TransferError as e:
            console.print(f"[red]✗ Upload failed: {e}[/red]")
            raise typer.Exit(1)


@app.command()
def download(
    url: str = typer.Argument(..., help="URL to download"),
    path: Path = typer.Argument(..., help="Local destination path"),
    force: bool = typer.Option(False, "--force", help="Download even if the file exists"),
    config_path: Optional[str] = ConfigOption,
    insecure: bool = InsecureOption,
    cacert: Optional[str] = CacertOption,
    http3: bool = Http3Option,
):
    """Download a file unless it already exists."""
    config = _load(config_path, insecure, cacert, http3)
    force = force or config.downloader.force

    if path.exists() and not force:
        _print_skipped(path)
        return

    with _open_client(config) as client:
        progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=console
        )
        with progress:
            task = progress.add_task(path.name, total=None)
            
            def update(written: int, total: Optional[int]) -> None:
                progress.update(task, completed=written, total=total)
            
            try:
                fetched = client.download(path, url, force=force, progress=update)
            except TransferError as e:
                progress.stop()
                console.print(f"[red]✗ Download failed: {e}[/red]")
                raise typer.Exit(1)
    
    if fetched:
        console.print(f"[green]✓ Downloaded {path} ({format_bytes(path.stat().st_size)})[/green]")
    else:
        _print_skipped(path)


def _print_skipped(path: Path) -> None:
    console.print(f"[yellow]{path} already exists, skipped (use --force to re-download)[/yellow]")


@app.command("config")
def show_config(
    config_path: Optional[str] = ConfigOption,
):
    """Show the effective configuration."""
    config = load_config(config_path)
    
    table = Table(title="httpxfer configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    
    for section_name, section in (("http", config.http), ("downloader", config.downloader), ("logging", config.logging)):
        for key, value in section.model_dump().items():
            if isinstance(value, dict):
                value = ", ".join(f"{k}: {v}" for k, v in value.items())
            table.add_row(f"{section_name}.{key}", str(value))
    
    console.print(table)


def main():
    """Entry point of the ``httpxfer`` script."""
    app()


if __name__ == "__main__":
    main()
