from utils.symbols import LogSymbols


def filter_downloads(descriptors, ignore_project_ids, log_callback=None):
    """Drop ignored projects and return the download URLs to fetch, in order."""
    def log(msg, **kwargs):
        if log_callback:
            log_callback(msg, **kwargs)

    ignore_project_ids = set(ignore_project_ids or ())
    urls = []

    for mod in descriptors:
        if mod.project_id and mod.project_id in ignore_project_ids:
            log(f"  {LogSymbols.SKIPPED} Skipping mod with projectID: {mod.project_id}", info=True)
            continue

        if mod.download_url:
            urls.append(mod.download_url)
            continue

        log(f"  {LogSymbols.ERROR} No download url found for mod with projectID: {mod.project_id or '?'}",
            error=True)

    log(f"  Mods to download: {urls}", debug=True)
    return urls
