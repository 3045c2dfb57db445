"""Toast message templates, rendered through the optional translator."""

from typing import Any, Dict, Optional, Tuple

from pyqt_entitylist.protocols import Toast, ToastVariant, TranslatorProtocol, get_translator

# message id -> (title template, description template, variant)
MESSAGES: Dict[str, Tuple[str, str, ToastVariant]] = {
    "fetch.refreshing": (
        "Refreshing Data", "Fetching the latest {entity_plural}.", ToastVariant.DEFAULT),
    "dialog.create_success": (
        "Success!", "Successfully created {name}.", ToastVariant.SUCCESS),
    "dialog.update_success": (
        "Success!", "Successfully updated {name}.", ToastVariant.SUCCESS),
    "dialog.delete_success": (
        "Success!", "Successfully deleted {name}.", ToastVariant.SUCCESS),
    "dialog.generic_success": (
        "Success!", "Action completed successfully.", ToastVariant.SUCCESS),
    "bulk.no_items_selected": (
        "No Items Selected", "Please select items to {mode}.", ToastVariant.WARNING),
    "bulk.select_one_to_edit": (
        "Select One Item", "Please select only one {entity} to edit.", ToastVariant.INFO),
    "bulk.item_not_found": (
        "Item Not Found", "The selected {entity} could not be found. It may have been deleted.",
        ToastVariant.WARNING),
    "bulk.delete_completed": (
        "Delete Completed", "{success_count} deleted, {fail_count} failed.", ToastVariant.SUCCESS),
    "bulk.delete_failed": (
        "Deletion Failed", "{success_count} deleted, {fail_count} failed.", ToastVariant.DESTRUCTIVE),
    "import.no_records": (
        "No Records", "The import file contained no records.", ToastVariant.WARNING),
    "import.no_valid_records": (
        "No Valid Records", "No valid {entity_plural} were found in the import file.", ToastVariant.WARNING),
    "import.completed": (
        "Import Completed", "{success_count} {entity_plural} imported, {fail_count} failed.",
        ToastVariant.SUCCESS),
    "import.failed": (
        "Import Failed", "{success_count} {entity_plural} imported, {fail_count} failed.",
        ToastVariant.DESTRUCTIVE),
}


def render(text: str, params: Dict[str, Any]) -> str:
    try:
        return text.format(**params)
    except (KeyError, IndexError, ValueError):
        return text


def build_toast(message_id: str, translate: Optional[TranslatorProtocol] = None,
                variant: Optional[ToastVariant] = None, **params: Any) -> Toast:
    """Build a Toast for ``message_id`` with ``params`` substituted."""
    title, description, default_variant = MESSAGES[message_id]
    translate = translate or get_translator()
    if translate is not None:
        title = translate(f"{message_id}.title", title, **params)
        description = translate(f"{message_id}.description", description, **params)
    return Toast(
        title=render(title, params),
        description=render(description, params),
        variant=variant or default_variant,
    )
