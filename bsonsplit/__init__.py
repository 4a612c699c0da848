#!/usr/bin/env python

import logging
import struct
import time

import bson
from bson.codec_options import CodecOptions, DatetimeConversion
from bson.errors import InvalidBSON, InvalidDocument
from bson.raw_bson import RawBSONDocument

from bsonsplit.utils import epoch_millis, file_prefix, output_paths

logger = logging.getLogger(__name__)

AUTO_FLUSH = 100000

# Length prefix plus the trailing terminator.
MIN_DOCUMENT_SIZE = 5

CODEC_OPTIONS = CodecOptions(
  document_class=dict,
  tz_aware=False,
  datetime_conversion=DatetimeConversion.DATETIME_AUTO)

_LENGTH = struct.Struct("<i")

_READ_CHUNK = 1 << 20

##########
# Errors #
##########

class StreamError(ValueError):
  """ Input is not a well formed stream of BSON documents. """

class SplitError(Exception):
  """
  A run failed. phase is one of 'open', 'create', 'decode', 'write', 'flush'.
  """
  def __init__(self, phase, message):
    super().__init__("%s: %s" % (phase, message))
    self.phase = phase

####################
# Document Decoder #
####################

def read_document(stream, codec_options=CODEC_OPTIONS):
  """
  stream is a binary file object positioned at a document boundary.
  returns the next document, or None when the stream ended cleanly.
  raises StreamError when the stream ends inside a document or the document
  does not decode.
  """
  data = _read_document_bytes(stream)
  if data is None:
    return None
  return _decode(data, codec_options)

def read_raw_document(stream, codec_options=CODEC_OPTIONS):
  """
  Same as read_document, but returns a RawBSONDocument holding the document's
  own bytes. The document is still decoded with codec_options to check it.
  """
  data = _read_document_bytes(stream)
  if data is None:
    return None
  _decode(data, codec_options)
  return RawBSONDocument(data)

def iter_documents(stream, codec_options=CODEC_OPTIONS):
  """ yields documents from stream until it ends cleanly """
  while True:
    doc = read_document(stream, codec_options)
    if doc is None:
      break
    yield doc

def _read_document_bytes(stream):
  prefix = _read_up_to(stream, _LENGTH.size)
  if len(prefix) == 0:
    return None
  if len(prefix) < _LENGTH.size:
    raise StreamError("Stream ended inside a length prefix (%d of %d bytes)" % (len(prefix), _LENGTH.size))
  (length,) = _LENGTH.unpack(prefix)
  if length < MIN_DOCUMENT_SIZE:
    raise StreamError("Invalid document length %d" % length)
  body = _read_up_to(stream, length - _LENGTH.size)
  if len(body) < length - _LENGTH.size:
    raise StreamError("Stream ended inside a document (%d of %d bytes)" % (len(body) + _LENGTH.size, length))
  return prefix + body

def _read_up_to(stream, size):
  """
  Reads size bytes, _READ_CHUNK at a time. Returns fewer at the end of the
  stream.
  """
  chunks = []
  remaining = size
  while remaining > 0:
    chunk = stream.read(min(remaining, _READ_CHUNK))
    if not chunk:
      break
    chunks.append(chunk)
    remaining -= len(chunk)
  return b"".join(chunks)

def _decode(data, codec_options):
  try:
    return bson.decode(data, codec_options=codec_options)
  except InvalidBSON as e:
    raise StreamError("Invalid document: %s" % e) from e

###########################
# Round Robin Distributor #
###########################

class Splitter:

  ############################
  # Python special functions #
  ############################
  def __init__(self, paths, flush_every=AUTO_FLUSH, codec_options=CODEC_OPTIONS):
    """
    paths is list of str, one per output file, in creation order.
    flush_every is int, number of writes between flushes of every sink.
    """
    if len(paths) < 1:
      raise ValueError("split must be at least 1")
    if flush_every < 1:
      raise ValueError("flush_every must be at least 1")
    self.paths = list(paths)
    self.flush_every = flush_every
    self.codec_options = codec_options
    self.sinks = []
    self.cycle = 0
    self.writes = 0
    self.bytes_written = 0
    self.counts = [0] * len(self.paths)

  def __enter__(self):
    self._create()
    return self

  def __exit__(self, type, value, traceback):
    self._close(check=type is None)

  #######################
  # Interface Functions #
  #######################
  def split(self, stream):
    """
    Distribute every document of stream over the sinks.
    returns the output paths.
    """
    while True:
      try:
        doc = read_raw_document(stream, self.codec_options)
      except StreamError as e:
        raise SplitError("decode", "document %d: %s" % (self.writes + 1, e)) from e
      if doc is None:
        break
      self.write(doc)
    self.flush()
    return self.paths

  def write(self, doc):
    """ write doc to the current sink and advance the cycle """
    try:
      data = bson.encode(doc, codec_options=self.codec_options)
      self.sinks[self.cycle].write(data)
    except (OSError, InvalidDocument) as e:
      raise SplitError("write", "Failed to write document to %s: %s" % (self.paths[self.cycle], e)) from e
    self.counts[self.cycle] += 1
    self.bytes_written += len(data)
    self.writes += 1
    self.cycle = (self.cycle + 1) % len(self.sinks)
    if self.writes % self.flush_every == 0:
      logger.debug("Flushing %d files after %d documents", len(self.sinks), self.writes)
      self.flush()

  def flush(self):
    """ flush every sink """
    for (path, sink) in zip(self.paths, self.sinks):
      try:
        sink.flush()
      except OSError as e:
        raise SplitError("flush", "Failed to flush %s: %s" % (path, e)) from e

  #############################
  # Sink Management Functions #
  #############################
  def _create(self):
    for path in self.paths:
      try:
        self.sinks.append(open(path, 'wb'))
      except OSError as e:
        self._close(check=False)
        raise SplitError("create", "Failed to create %s: %s" % (path, e)) from e

  def _close(self, check=True):
    """
    Close every sink. When check is set, the first close failure is raised
    once every sink has been closed.
    """
    # Already flushed files stay on disk, there is no rollback.
    sinks, self.sinks = self.sinks, []
    failure = None
    for (path, sink) in zip(self.paths, sinks):
      try:
        sink.close()
      except OSError as e:
        logger.warning("Failed to close %s", path, exc_info=True)
        if failure is None:
          failure = (path, e)
    if check and failure is not None:
      (path, e) = failure
      raise SplitError("flush", "Failed to close %s: %s" % (path, e)) from e

def split_file(path, split, directory=None, flush_every=AUTO_FLUSH, clock=time.time):
  """
  path is str, the BSON file to read.
  split is int, the number of files to produce.
  directory is maybe str, where to create the files. Defaults to the working directory.
  returns list of str, the created paths in order.
  """
  if split < 1:
    raise ValueError("split must be at least 1")
  try:
    prefix = file_prefix(path)
  except ValueError as e:
    raise SplitError("open", str(e)) from e
  try:
    stream = open(path, 'rb')
  except OSError as e:
    raise SplitError("open", "Failed to open %s: %s" % (path, e)) from e
  with stream:
    paths = output_paths(prefix, epoch_millis(clock), split, directory)
    logger.info("Splitting %s into %d files: %s", path, split, ", ".join(paths))
    with Splitter(paths, flush_every) as splitter:
      splitter.split(stream)
    logger.info("Wrote %d documents (%d bytes), per file: %s",
                splitter.writes, splitter.bytes_written, splitter.counts)
  return paths
