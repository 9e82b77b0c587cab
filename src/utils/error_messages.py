"""User-friendly error message templates."""

import requests

from utils.symbols import LogSymbols


def get_user_friendly_error(error_type, error_details=""):
    """Convert error type to user-friendly message with actionable steps."""
    messages = {
        'network_timeout': (
            f"{LogSymbols.ERROR_BOLD} Connection timeout\n\n"
            "The download took too long to respond.\n\n"
            "Try:\n"
            f"{LogSymbols.BULLET} Check the server's internet connection\n"
            f"{LogSymbols.BULLET} Run the installer again later (the CDN might be busy)\n"
            f"{LogSymbols.BULLET} Check if a firewall is blocking outgoing connections"
        ),

        'network_404': (
            f"{LogSymbols.ERROR_BOLD} File not found (404)\n\n"
            "The download link is broken or the file was removed.\n\n"
            "Try:\n"
            f"{LogSymbols.BULLET} Check if the modpack version is still published\n"
            f"{LogSymbols.BULLET} Update to a newer modpack release"
        ),

        'rate_limited': (
            f"{LogSymbols.WARNING} Too many requests\n\n"
            "The download host refused the request (403/429).\n\n"
            "Try:\n"
            f"{LogSymbols.BULLET} Wait a few minutes and run the installer again\n"
            f"{LogSymbols.BULLET} Add the mod to ignoreProject and install it manually"
        ),

        'invalid_url': (
            f"{LogSymbols.ERROR_BOLD} Invalid download URL\n\n"
            "The manifest lists a URL that cannot be requested.\n\n"
            "Try:\n"
            f"{LogSymbols.BULLET} Report the broken entry to the modpack author\n"
            f"{LogSymbols.BULLET} Add the mod to ignoreProject and install it manually"
        ),

        'disk_space': (
            f"{LogSymbols.ERROR_BOLD} Not enough disk space\n\n"
            "The server drive doesn't have enough free space for the modpack.\n\n"
            "Try:\n"
            f"{LogSymbols.BULLET} Free up space on the server drive\n"
            f"{LogSymbols.BULLET} Delete the OLD_TO_DELETE folder from a previous install"
        ),

        'permission_denied': (
            f"{LogSymbols.ERROR_BOLD} Permission denied\n\n"
            "The installer can't write to the server folder.\n\n"
            "Try:\n"
            f"{LogSymbols.BULLET} Check folder ownership and permissions\n"
            f"{LogSymbols.BULLET} Stop the server if it's running"
        ),

        'corrupted_archive': (
            f"{LogSymbols.ERROR_BOLD} Corrupted modpack\n\n"
            "The modpack file is damaged or incomplete.\n\n"
            "Try:\n"
            f"{LogSymbols.BULLET} Delete the downloaded .mrpack and run the installer again\n"
            f"{LogSymbols.BULLET} Check your internet connection stability"
        ),
    }

    default_message = (
        f"{LogSymbols.ERROR_BOLD} An error occurred\n\n"
        f"Technical details: {error_details}\n\n"
        f"Try:\n"
        f"{LogSymbols.BULLET} Check the log for more information\n"
        f"{LogSymbols.BULLET} Run the installer again"
    )

    return messages.get(error_type, default_message)


def suggest_fix_for_error(exception):
    # URL errors (checked before RequestException: InvalidURL is a subclass)
    if isinstance(exception, (requests.exceptions.InvalidURL,
                              requests.exceptions.MissingSchema,
                              requests.exceptions.InvalidSchema)):
        return 'invalid_url'

    # Network errors
    if isinstance(exception, requests.exceptions.Timeout):
        return 'network_timeout'
    elif isinstance(exception, requests.exceptions.ConnectionError):
        return 'network_timeout'
    elif isinstance(exception, requests.exceptions.HTTPError):
        status = exception.response.status_code if exception.response is not None else None
        if status == 404:
            return 'network_404'
        elif status in (403, 429):
            return 'rate_limited'

    # File system errors
    elif isinstance(exception, PermissionError):
        return 'permission_denied'
    elif isinstance(exception, OSError):
        if 'No space left' in str(exception):
            return 'disk_space'
        return 'permission_denied'
    elif isinstance(exception, ValueError):
        return 'invalid_url'

    # Archive errors
    elif 'zipfile' in str(type(exception)).lower():
        return 'corrupted_archive'

    return None  # Use default message
