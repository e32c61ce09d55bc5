# Infrastructure Persistence Package
from .models import Base, PhraseRecord, ReviewRecord, StudySessionRecord

__all__ = ["Base", "PhraseRecord", "ReviewRecord", "StudySessionRecord"]
