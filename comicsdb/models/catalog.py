"""
Catalog Models - mapping of the externally owned cdb_* tables

Rows are created and edited by the admin tooling; this service only reads
them, except for Comic.metron_image which caches the resolved secondary
cover URL. Every entity carries a nullable date_delete (soft delete).
"""
import enum

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Boolean, Float, ForeignKey
from sqlalchemy.orm import relationship

from comicsdb.core.database import Base


class SeriesStatus(str, enum.Enum):
    """Publication status of a series as stored in cdb_series.status."""
    CONTINUING = "continuing"
    FINISHED = "finished"
    FROZEN = "frozen"
    UNKNOWN = "unknown"

    @classmethod
    def from_db(cls, value) -> "SeriesStatus":
        return _STATUS_FROM_DB.get((value or "").strip().lower(), cls.UNKNOWN)


_STATUS_FROM_DB = {
    "continue": SeriesStatus.CONTINUING,
    "finish": SeriesStatus.FINISHED,
    "freez": SeriesStatus.FROZEN,
}


class Publisher(Base):
    """Publishers - Marvel, DC, Image, etc."""
    __tablename__ = 'cdb_publishers'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    date_delete = Column(DateTime, nullable=True)

    series = relationship("Series", back_populates="publisher")


class Series(Base):
    __tablename__ = 'cdb_series'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    volume = Column(Integer)
    publisher_id = Column("publisher", Integer, ForeignKey('cdb_publishers.id'), index=True)
    thumb = Column(Text)
    small = Column(Text)
    super_url = Column("super", Text)
    status = Column(String(20))
    comicvine = Column(Integer)  # Issue total according to ComicVine
    total = Column(Integer)
    first = Column(Integer)
    last_issue = Column("lastIssue", Integer)
    updated = Column(DateTime)
    date_delete = Column(DateTime, nullable=True)

    publisher = relationship("Publisher", back_populates="series")
    comics = relationship("Comic", back_populates="series")
    genre_links = relationship("SeriesGenre", back_populates="series")

    @property
    def series_status(self) -> SeriesStatus:
        return SeriesStatus.from_db(self.status)


class Comic(Base):
    """
    One translated issue.

    Several rows may share a comicvine id (competing translations of the
    same issue). translate/edit/characters/creators/teams are comma-joined
    lists; site/site2 hold cdb_sites ids as strings, '0' meaning none.
    """
    __tablename__ = 'cdb_comics'

    id = Column(Integer, primary_key=True)
    comicvine = Column(Integer, index=True)
    number = Column(Float)
    series_id = Column("serie", Integer, ForeignKey('cdb_series.id'), index=True)
    name = Column(String(255))

    date = Column(Date)       # Translation date
    pdate = Column(Date)      # Original publish date
    adddate = Column(DateTime, index=True)

    thumb = Column(Text)
    tiny = Column(Text)
    small = Column(Text)
    super_url = Column("super", Text)

    translate = Column(Text)
    edit = Column(Text)
    characters = Column(Text)
    creators = Column(Text)
    teams = Column(Text)

    site = Column(String(50))
    site2 = Column(String(50))
    link = Column(Text)
    link2 = Column(Text)

    # NULL = never looked up, '' = looked up and not found
    metron_image = Column(Text)

    date_delete = Column(DateTime, nullable=True)

    series = relationship("Series", back_populates="comics")


class Site(Base):
    """A scanlation team's site."""
    __tablename__ = 'cdb_sites'

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    url = Column(Text)
    hidesite = Column(Boolean, default=False)
    numofcoms = Column(Integer, default=0)
    date_delete = Column(DateTime, nullable=True)


class Genre(Base):
    __tablename__ = 'cdb_zhanr'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    date_delete = Column(DateTime, nullable=True)

    series_links = relationship("SeriesGenre", back_populates="genre")


class SeriesGenre(Base):
    __tablename__ = 'cdb_series_genres'

    id = Column(Integer, primary_key=True)
    series_id = Column(Integer, ForeignKey('cdb_series.id'), index=True)
    genre_id = Column(Integer, ForeignKey('cdb_zhanr.id'), index=True)

    series = relationship("Series", back_populates="genre_links")
    genre = relationship("Genre", back_populates="series_links")


class EventCategory(Base):
    """Grouping of crossover events within a publisher."""
    __tablename__ = 'cdb_globgenl'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    publisher_id = Column("publisher", Integer, ForeignKey('cdb_publishers.id'))
    date_delete = Column(DateTime, nullable=True)


class GlobalEvent(Base):
    """A crossover event (e.g. Secret Wars) with its reading order."""
    __tablename__ = 'cdb_globals'

    id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    years = Column(String(50))
    sort_order = Column("order", Integer, default=0)
    text = Column(Text)
    chronology = Column(Text)
    category_id = Column("genl", Integer, ForeignKey('cdb_globgenl.id'))
    publisher_id = Column("publisher", Integer, ForeignKey('cdb_publishers.id'))
    date_delete = Column(DateTime, nullable=True)

    issues = relationship("EventIssue", back_populates="event")


class EventIssue(Base):
    """
    One entry of an event's reading order.

    comics holds either a cdb_comics id or a comicvine id, as a string.
    """
    __tablename__ = 'cdb_globcom'

    id = Column(Integer, primary_key=True)
    event_id = Column("global", String(50), ForeignKey('cdb_globals.id'), index=True)
    comics = Column(String(50))
    name = Column(String(255))
    number = Column(String(20))
    sort_order = Column("order", Integer, default=0)
    tiny = Column(Text)
    thumb = Column(Text)
    super_url = Column("super", Text)
    pdate = Column(Date)
    date_delete = Column(DateTime, nullable=True)

    event = relationship("GlobalEvent", back_populates="issues")
