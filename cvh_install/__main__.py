# cvh_install/__main__.py
from cvh_install.cli import app


def main():
    """
    Main application
    """
    app()


if __name__ == "__main__":
    main()
