import html
import time
from typing import List
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from fastapi.responses import HTMLResponse

from pdf_dev_server import config
from pdf_dev_server.app.models.entry import RemoteEntry
from pdf_dev_server.app.services.storage_backend import StorageBackend, StorageError
from pdf_dev_server.logger_config import setup_logger

logger = setup_logger()

VIEWER_PATH = "/web/viewer.html"
PAGE_TITLE = "PDF Document Library"

PAGE_HEADER = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{title}</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, sans-serif; background: #f0f2f5; color: #333; margin: 0; padding: 20px; }}
    h1 {{ color: #0056b3; }}
    .upload-form, .file-item {{ background: #fff; border-radius: 8px; box-shadow: 0 2px 4px rgba(0, 0, 0, 0.1); }}
    .upload-form {{ margin: 20px 0; padding: 15px; }}
    .file-item {{ display: flex; align-items: center; margin: 10px 0; padding: 10px; }}
    .file-item a {{ color: #0056b3; font-weight: bold; text-decoration: none; flex-grow: 1; }}
    .file-item a:hover {{ text-decoration: underline; }}
    .delete-button {{ margin-left: auto; background: #0056b3; color: #fff; border: none; padding: 8px 12px; border-radius: 4px; cursor: pointer; }}
    #uploadMessage {{ color: red; margin-top: 10px; }}
  </style>
</head>
<body>
<h1>{title}</h1>
"""

UPLOAD_FORM = """<div class="upload-form">
  <form id="uploadForm" action="/upload" method="post" enctype="multipart/form-data">
    <input type="file" name="pdf" accept=".pdf" required>
    <input type="submit" value="Upload PDF">
  </form>
  <div id="uploadMessage"></div>
</div>
<script>
  document.getElementById('uploadForm').onsubmit = async function (event) {
    event.preventDefault();
    const response = await fetch('/upload', { method: 'POST', body: new FormData(this) });
    const result = await response.json();
    const messageDiv = document.getElementById('uploadMessage');
    if (result.error) {
      messageDiv.textContent = result.error;
    } else {
      messageDiv.textContent = '';
      location.reload();
    }
  };
</script>
"""

FILE_ROW = """<div class="file-item">
  <a href="{viewer_url}" target="_blank">{name}</a>
  <button class="delete-button" data-filename="{name}" onclick="deleteFile(this.dataset.filename)">Delete</button>
</div>
"""

PAGE_FOOTER = """<script>
  async function deleteFile(filename) {
    if (!confirm('Delete ' + filename + '?')) {
      return;
    }
    try {
      const response = await fetch('/delete', {
        method: 'POST',
        headers: { 'Content-Type': 'application/x-www-form-urlencoded' },
        body: new URLSearchParams({ filename })
      });
      if (!response.ok) {
        const data = await response.json();
        throw new Error(data.error || 'Delete failed');
      }
      location.reload();
    } catch (error) {
      alert(error.message);
    }
  }
</script>
</body>
</html>
"""


def escape_html(untrusted: str) -> str:
    """Escape & < > " and ' so the text is safe in element and attribute content."""
    return html.escape(untrusted, quote=True)


def cache_busted_url(url: str, version: str) -> str:
    """Set the `v` query parameter of url, replacing any earlier value."""
    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != "v"]
    query.append(("v", version))
    return urlunsplit(parts._replace(query=urlencode(query)))


class DirectoryIndexRenderer:
    def __init__(self, storage: StorageBackend, page_size: int = config.INDEX_PAGE_SIZE):
        self.storage = storage
        self.page_size = page_size

    async def _list_entries(self) -> List[RemoteEntry]:
        try:
            return await self.storage.list(prefix="", limit=self.page_size, offset=0,
                                           sort_by="name", order="asc")
        except StorageError as e:
            # The page still renders, just without entries
            logger.error(f"Error listing files: {str(e)}")
            return []

    def viewer_url(self, entry: RemoteEntry) -> str:
        version = entry.updated_at or str(int(time.time() * 1000))
        public_url = cache_busted_url(self.storage.get_public_url(entry.name), version)
        return f"{VIEWER_PATH}?file={quote(public_url, safe='')}&disableRange=true"

    def render_page(self, entries: List[RemoteEntry]) -> str:
        parts = [PAGE_HEADER.format(title=PAGE_TITLE), UPLOAD_FORM, '<div class="file-list">\n']
        for entry in entries:
            parts.append(FILE_ROW.format(
                viewer_url=escape_html(self.viewer_url(entry)),
                name=escape_html(entry.name),
            ))
        parts.append('</div>\n')
        if not entries:
            parts.append("<p>No files found</p>\n")
        parts.append(PAGE_FOOTER)
        return "".join(parts)

    async def render(self) -> HTMLResponse:
        entries = await self._list_entries()
        return HTMLResponse(self.render_page(entries))
