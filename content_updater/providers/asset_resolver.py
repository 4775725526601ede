"""
Asset Resolver - вычисление полного набора файлов для скачивания

Явный список files из манифеста используется как есть. Без него набор
собирается из структуры книг и дополняется обходом index.html и CSS.
"""

import logging
import posixpath
import re
from typing import Optional, List, Dict, Any, Iterable
from urllib.parse import urljoin, urlparse, urldefrag, unquote

from bs4 import BeautifulSoup

from ..config import UpdaterConfig
from ..core.errors import DownloadError, UpdaterError
from ..core.types import FileDescriptor, Manifest
from .http_client import UpdateHTTPClient

logger = logging.getLogger(__name__)

CSS_URL_RE = re.compile(r"""url\(\s*['"]?([^'")]+?)['"]?\s*\)""", re.IGNORECASE)
SKIPPED_SCHEMES = ("data:", "javascript:", "mailto:", "tel:", "about:", "blob:")
MEDIA_ITEM_TYPES = ("image", "video")


def _base(base_url: str) -> str:
    return base_url.rstrip("/")


def _is_absolute_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def resolve_reference(ref: Any, base_url: str, book: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """
    Разрешение ссылки из манифеста в абсолютный URL

    - абсолютный URL возвращается как есть;
    - путь с ведущим / считается от base_url;
    - голое имя файла попадает в {base_url}/books/{book.id}/;
    - остальное разрешается относительно base_url.
    """
    if not isinstance(ref, str) or not ref.strip():
        return None
    ref = ref.strip()
    base = _base(base_url)

    if _is_absolute_url(ref):
        return ref
    if ref.startswith("//"):
        return urljoin(base + "/", ref)
    if ref.startswith("/"):
        return base + ref
    if "/" not in ref and book is not None and book.get("id") is not None:
        return f"{base}/books/{book['id']}/{ref}"
    return urljoin(base + "/", ref)


def infer_from_manifest(manifest: Manifest, base_url: str, manifest_name: str = "content.json") -> List[str]:
    """Обход книг (books и collections[].books[]): обложки и src у image/video"""
    found: Dict[str, None] = {}

    for book in manifest.books:
        cover = resolve_reference(book.get("cover"), base_url, book)
        if cover:
            found[cover] = None

        content = book.get("content")
        if not isinstance(content, list):
            continue
        for item in content:
            if not isinstance(item, dict) or item.get("type") not in MEDIA_ITEM_TYPES:
                continue
            src = resolve_reference(item.get("src"), base_url, book)
            if src:
                found[src] = None

    # Сам манифест всегда входит в набор
    found[f"{_base(base_url)}/{manifest_name}"] = None
    return list(found)


def _clean_reference(value: str, page_url: str) -> Optional[str]:
    value = value.strip()
    if not value or value.startswith("#"):
        return None
    if value.lower().startswith(SKIPPED_SCHEMES):
        return None
    try:
        resolved, _ = urldefrag(urljoin(page_url, value))
    except ValueError:
        return None
    if not _is_absolute_url(resolved):
        return None
    return resolved


def parse_css_for_assets(css_text: str, css_url: str) -> List[str]:
    """Ссылки url(...) из CSS, разрешенные относительно самого CSS"""
    if not css_text:
        return []
    found: Dict[str, None] = {}
    for match in CSS_URL_RE.finditer(css_text):
        url = _clean_reference(match.group(1), css_url)
        if url:
            found[url] = None
    return list(found)


def parse_html_for_assets(html: str, page_url: str) -> List[str]:
    """Значения src/href/srcset и inline url(...) из HTML"""
    if not html:
        return []
    found: Dict[str, None] = {}

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(True):
        values = [tag.get("src"), tag.get("href")]
        srcset = tag.get("srcset")
        if isinstance(srcset, list):
            srcset = " ".join(srcset)
        if srcset:
            values.extend(candidate.strip().split(" ")[0] for candidate in srcset.split(","))
        for value in values:
            if not isinstance(value, str):
                continue
            url = _clean_reference(value, page_url)
            if url:
                found[url] = None

    # style="..." и <style> покрываются проходом по всему тексту
    for url in parse_css_for_assets(html, page_url):
        found[url] = None
    return list(found)


def _safe_relative_path(path: str) -> Optional[str]:
    path = path.replace("\\", "/").lstrip("/")
    if not path or path.endswith("/"):
        return None
    normalized = posixpath.normpath(path)
    if normalized in (".", "..") or normalized.startswith("../"):
        return None
    return normalized


def relative_path_for(url: str, base_url: str) -> Optional[str]:
    """Путь назначения: путь URL относительно префикса base_url"""
    path = unquote(urlparse(url).path)
    prefix = urlparse(_base(base_url)).path.rstrip("/")
    if prefix and path.startswith(prefix + "/"):
        path = path[len(prefix):]
    return _safe_relative_path(path)


class AssetResolver:
    """Провайдер набора файлов для скачивания"""

    def __init__(self, config: UpdaterConfig, http_client: UpdateHTTPClient):
        self.config = config
        self.http_client = http_client

    def resolve(self, manifest: Manifest, base_url: str) -> List[FileDescriptor]:
        """
        Полный набор файлов обновления

        Raises:
            DownloadError: Запись явного списка files указывает за пределы дерева
        """
        if manifest.files:
            descriptors = self.from_file_list(manifest.files, base_url)
            manifest_name = self.config.manifest_name
            if all(d.relative_path != manifest_name for d in descriptors):
                # Новый манифест всегда входит в коммитящееся дерево
                descriptors.append(FileDescriptor(
                    url=f"{_base(base_url)}/{manifest_name}",
                    relative_path=manifest_name,
                ))
            logger.info(f"📋 Используется явный список файлов: {len(descriptors)}")
            return descriptors

        inferred = infer_from_manifest(manifest, base_url, self.config.manifest_name)
        scraped = self.discover_from_index(base_url)

        urls: Dict[str, None] = dict.fromkeys(inferred)
        urls.update(dict.fromkeys(scraped))
        urls[f"{_base(base_url)}/{self.config.index_name}"] = None

        descriptors = self._to_descriptors(urls, base_url)
        logger.info(
            f"🔎 Найдено файлов: {len(descriptors)} "
            f"(из манифеста {len(inferred)}, из index.html/CSS {len(scraped)})"
        )
        return descriptors

    def from_file_list(self, entries: Iterable[Dict[str, Any]], base_url: str) -> List[FileDescriptor]:
        base = _base(base_url) + "/"
        descriptors = []
        for entry in entries:
            raw_url = entry.get("url") or entry.get("path") or entry.get("relativePath") or ""
            url = urljoin(base, str(raw_url))

            raw_path = (entry.get("relativePath") or entry.get("path")
                        or posixpath.basename(urlparse(url).path))
            relative = _safe_relative_path(unquote(str(raw_path)))
            if relative is None:
                raise DownloadError(url, f"недопустимый путь назначения: {raw_path!r}")

            size = entry.get("size")
            descriptors.append(FileDescriptor(
                url=url,
                relative_path=relative,
                size=int(size) if isinstance(size, (int, float)) and size > 0 else None,
            ))
        return descriptors

    def discover_from_index(self, base_url: str) -> List[str]:
        """Обход index.html и подключенных CSS; любой сбой дает пустой набор"""
        index_url = f"{_base(base_url)}/{self.config.index_name}"
        try:
            html = self.http_client.fetch_text(index_url, timeout=self.config.index_timeout)
        except UpdaterError as e:
            logger.warning(f"⚠️ Не удалось получить index.html: {e}")
            return []

        try:
            assets = parse_html_for_assets(html, index_url)
        except Exception as e:
            logger.warning(f"⚠️ Не удалось разобрать index.html: {e}")
            return []
        assets = self._filter_origin(assets, base_url)

        found: Dict[str, None] = dict.fromkeys(assets)
        for css_url in [u for u in assets if urlparse(u).path.lower().endswith(".css")]:
            try:
                css_text = self.http_client.fetch_text(css_url, timeout=self.config.css_timeout)
            except UpdaterError as e:
                logger.warning(f"⚠️ Не удалось получить CSS {css_url}: {e}")
                continue
            found.update(dict.fromkeys(self._filter_origin(parse_css_for_assets(css_text, css_url), base_url)))
        return list(found)

    def _filter_origin(self, urls: List[str], base_url: str) -> List[str]:
        if not self.config.same_origin_only:
            return urls
        origin = urlparse(base_url)
        return [u for u in urls if urlparse(u)[:2] == origin[:2]]

    def _to_descriptors(self, urls: Iterable[str], base_url: str) -> List[FileDescriptor]:
        descriptors = []
        seen_paths = set()
        for url in urls:
            relative = relative_path_for(url, base_url)
            if relative is None:
                logger.debug(f"Пропуск URL без пути файла: {url}")
                continue
            if relative in seen_paths:
                logger.debug(f"Пропуск дубликата пути {relative}: {url}")
                continue
            seen_paths.add(relative)
            descriptors.append(FileDescriptor(url=url, relative_path=relative))
        return descriptors
