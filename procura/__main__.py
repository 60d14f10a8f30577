from procura.cli import cli

cli()
