from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Text, LargeBinary
from chameleon.database import Base


class ConversionHistory(Base):
    """Table storing conversions the user chose to keep.
    ユーザーが保存を選んだ変換の履歴を保持するテーブル。

    The autoincrement key breaks ties between equal timestamps.
    同じタイムスタンプの並び順は自動採番キーで決める。
    """
    __tablename__ = "conversion_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    record_id = Column(String(36), unique=True, index=True, nullable=False)
    input_filename = Column(String, nullable=False)
    input_format = Column(String, nullable=False)
    output_format = Column(String, nullable=False)
    output_filename = Column(String, nullable=False)
    output_path = Column(Text, nullable=False)
    # Stored as naive UTC; SQLite drops tzinfo
    # UTCで保存する（SQLiteはタイムゾーン情報を保持しない）
    conversion_time = Column(DateTime(timezone=True), nullable=False, index=True)
    file_size = Column(BigInteger, nullable=False, default=0)
    thumbnail = Column(LargeBinary, nullable=True)
