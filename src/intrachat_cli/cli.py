from datetime import timedelta

import click

from intrachat_cli.chat import chat


@click.group()
def cli():
    """intrachat CLI - realtime chat tooling."""


@click.command()
@click.argument("user_id")
@click.option("--secret", envvar="JWT_SECRET", required=True, help="Signing secret (or set JWT_SECRET)")
@click.option("--hours", default=1.0, show_default=True, help="Token lifetime in hours")
def token(user_id: str, secret: str, hours: float):
    """Mint a development access token for USER_ID."""
    from intrachat_backend.settings import settings
    from intrachat_backend.websocket.auth import create_access_token

    click.echo(create_access_token(
        user_id,
        secret,
        expires_in=timedelta(hours=hours),
        algorithm=settings.JWT_ALGORITHM,
        issuer=settings.JWT_ISSUER,
        audience=settings.JWT_AUDIENCE,
    ))


cli.add_command(chat, "chat")
cli.add_command(token, "token")

if __name__ == '__main__':
    cli()
