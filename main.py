import argparse
import logging
import sys

from PyQt5.QtWidgets import QApplication

from inkmark.config import ViewerSettings
from inkmark.ui import MainWindow

logger = logging.getLogger("inkmark")


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description="Inkmark PDF: read, highlight and annotate PDF documents."
    )
    parser.add_argument('file', nargs='?', help='PDF file to open')
    parser.add_argument(
        '--user',
        help='User id the annotations are stored under (default from settings)'
    )
    parser.add_argument(
        '--export-folder',
        help='Folder exported documents are written to (default: next to the original)'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Set logging level (default: INFO)'
    )
    # Qt consumes its own options from sys.argv
    args, _ = parser.parse_known_args(argv)
    return args


def main():
    """
    Main function to run the PDF annotator.
    It checks for a file path passed as a command-line argument.
    """
    args = parse_arguments()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    app = QApplication(sys.argv)

    settings = ViewerSettings.load()
    if args.user:
        settings.user_id = args.user
    if args.export_folder:
        settings.export_folder = args.export_folder

    logger.info("Starting Inkmark PDF as user %s", settings.user_id)
    window = MainWindow(args.file, settings=settings)
    window.showMaximized()
    sys.exit(app.exec_())


if __name__ == '__main__':
    main()
