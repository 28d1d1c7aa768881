"""
Editing session holding the current document and its live YAML projection.
"""
import logging
from typing import Any, Callable, List, Optional
from ..MODELS.compose_document import ComposeDocument
from ..CONVERTERS.to_compose_yaml import ComposeYamlConverter
from ..PARSERS.compose_parser import ComposeParser, TemplateReadError
from .document_manager import DocumentManager

logger = logging.getLogger(__name__)


class EditorSession:
    """
    Owns the document for one editing session and regenerates the YAML
    after every edit.
    """
    def __init__(self, document: Optional[ComposeDocument] = None):
        """
        Initializes the session.

        :param document: Starting document. Defaults to one unnamed service.
        """
        self.document = document if document is not None else DocumentManager.new_document()
        self.listeners: List[Callable[[str], None]] = []
        self.yaml = ComposeYamlConverter(self.document).convert()

    def subscribe(self, listener: Callable[[str], None]):
        """
        Registers a callback receiving the new YAML text after each change.

        :param listener: The callback.
        """
        self.listeners.append(listener)

    def apply(self, operation: Callable[..., ComposeDocument], *args: Any, **kwargs: Any) -> str:
        """
        Applies a DocumentManager operation to the current document.

        If the operation raises, the document is left as it was.

        :param operation: e.g. ``DocumentManager.rename_network``.
        :return: The regenerated YAML text.
        """
        document = operation(self.document, *args, **kwargs)
        return self._replace(document)

    def import_template(self, content: str, name: str = "template") -> str:
        """
        Replaces the document with one read from compose YAML.

        :param content: The compose file text.
        :param name: Template name, used in messages.
        :return: The regenerated YAML text.
        :raises TemplateReadError: If the template could not be read; the
            current document is kept.
        """
        try:
            document = ComposeParser().parse_from_string(content)
        except TemplateReadError:
            logger.warning("Template %s could not be read", name)
            raise
        logger.info("Imported template %s", name)
        return self._replace(document)

    def _replace(self, document: ComposeDocument) -> str:
        self.document = document
        self.yaml = ComposeYamlConverter(document).convert()
        for listener in self.listeners:
            listener(self.yaml)
        return self.yaml
