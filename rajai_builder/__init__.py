"""RajAI: chat-driven builder of single-file web apps."""
from .demux import StreamDemuxer
from .orchestrator import GenerationOrchestrator
from .session import ChatSession

__all__ = ['StreamDemuxer', 'GenerationOrchestrator', 'ChatSession']
