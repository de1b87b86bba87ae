"""Entry point for python -m coverline execution.

    python -m coverline --help
    python -m coverline process ./declarations.pdf
"""

from coverline.cli import app

if __name__ == "__main__":
    app()
