from pluginctl.main import cli

cli()
