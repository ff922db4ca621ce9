"""ClamAV daemon client: PING and INSTREAM over TCP."""

from clamstream.services.clamav.client import ClamAVClient
from clamstream.services.clamav.framing import CHUNK_SIZE, TERMINATOR, encode_chunk, iter_chunks
from clamstream.services.clamav.replies import assert_size_limit, is_clean_reply, reply_text
from clamstream.services.clamav.transport import ByteChannel, SocketChannel
