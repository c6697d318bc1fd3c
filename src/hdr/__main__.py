from hdr.cli import app

app()
