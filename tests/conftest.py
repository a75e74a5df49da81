"""Shared test fixtures for mimeident."""

import gzip
import io
import struct
import zipfile

import pytest

from mimeident.detector import MimeDetector


def _zip_bytes(entries):
    """Build an in-memory ZIP archive from ``(name, data)`` pairs."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in entries:
            zf.writestr(name, data, compress_type=zipfile.ZIP_STORED)
    return buf.getvalue()


class _StreamSink:
    """Write-only target without tell/seek, as seen by streaming writers."""

    def __init__(self):
        self.buffer = io.BytesIO()

    def write(self, data):
        return self.buffer.write(data)

    def flush(self):
        pass


def _streamed_zip_bytes(entries, compress_type=zipfile.ZIP_DEFLATED):
    """Build a ZIP archive on a non-seekable stream.

    Every entry then defers its sizes to a trailing data descriptor.
    """
    sink = _StreamSink()
    with zipfile.ZipFile(sink, "w") as zf:
        for name, data in entries:
            zf.writestr(name, data, compress_type=compress_type)
    return sink.buffer.getvalue()


@pytest.fixture(scope="session")
def detector():
    """A detector built on the built-in rule set."""
    return MimeDetector()


@pytest.fixture
def gzip_bytes():
    return gzip.compress(b"hello world\n" * 10)


@pytest.fixture
def png_bytes():
    return b"\x89PNG\r\n\x1a\n" + struct.pack(">I", 13) + b"IHDR" + b"\x00" * 17


@pytest.fixture
def pdf_bytes():
    return b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<< >>\nendobj\n"


@pytest.fixture
def zip_bytes():
    return _zip_bytes([("readme.txt", b"plain zip")])


@pytest.fixture
def docx_bytes():
    return _zip_bytes([
        ("[Content_Types].xml", b"<Types/>"),
        ("_rels/.rels", b"<Relationships/>"),
        ("word/document.xml", b"<w:document/>"),
    ])


@pytest.fixture
def xlsx_bytes():
    return _zip_bytes([
        ("[Content_Types].xml", b"<Types/>"),
        ("xl/workbook.xml", b"<workbook/>"),
    ])


@pytest.fixture
def odt_bytes():
    return _zip_bytes([
        ("mimetype", b"application/vnd.oasis.opendocument.text"),
        ("content.xml", b"<office:document-content/>"),
    ])


@pytest.fixture
def jar_bytes():
    return _zip_bytes([
        ("META-INF/MANIFEST.MF", b"Manifest-Version: 1.0\n"),
        ("Main.class", b"\xca\xfe\xba\xbe"),
    ])


@pytest.fixture
def custom_yaml():
    """A small override rule set with two unrelated types sharing a signature."""
    return """\
types:
  - type: application/x-alpha
    globs: ["*.alpha"]
    magic:
      - match:
          - value: SAME
  - type: application/x-beta
    globs: ["*.beta"]
    magic:
      - match:
          - value: SAME
  - type: application/x-gamma
    parent: application/x-alpha
    globs: ["*.gamma"]
    magic:
      - match:
          - value: GAM
"""


@pytest.fixture
def flowfile_xml():
    """A mime-info XML override in the style of custom Tika rule files."""
    return """\
<?xml version="1.0" encoding="UTF-8"?>
<mime-info>
  <mime-type type="application/flowfile-v3">
    <_comment>NiFi FlowFile package v3</_comment>
    <alias type="application/x-flowfile-v3"/>
    <glob pattern="*.pkg"/>
    <magic priority="50">
      <match value="NiFiFF3" type="string" offset="0"/>
    </magic>
  </mime-type>
  <mime-type type="application/flowfile-v1">
    <sub-class-of type="application/x-tar"/>
    <magic priority="50">
      <match value="ustar" type="string" offset="257">
        <match value="flowfile.attributes" type="string" offset="0"/>
      </match>
    </magic>
  </mime-type>
  <mime-type type="application/x-tar">
    <glob pattern="*.tar"/>
    <magic priority="40">
      <match value="ustar" type="string" offset="257"/>
    </magic>
  </mime-type>
</mime-info>
"""


@pytest.fixture
def streamed_docx_bytes():
    return _streamed_zip_bytes([
        ("[Content_Types].xml", b"<Types/>" * 20),
        ("_rels/.rels", b"<Relationships/>"),
        ("word/document.xml", b"<w:document>" + b"<w:p/>" * 200 + b"</w:document>"),
    ])


@pytest.fixture
def streamed_jar_bytes():
    return _streamed_zip_bytes([
        ("META-INF/MANIFEST.MF", b"Manifest-Version: 1.0\nCreated-By: jar\n"),
        ("Main.class", b"\xca\xfe\xba\xbe" + b"\x00" * 64),
    ])


@pytest.fixture
def streamed_odt_bytes():
    return _streamed_zip_bytes([
        ("mimetype", b"application/vnd.oasis.opendocument.text"),
        ("content.xml", b"<office:document-content/>"),
    ], compress_type=zipfile.ZIP_STORED)
