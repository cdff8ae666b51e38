from cloudwatch_poller.cli import app

app(prog_name="cloudwatch-poller")
