#file_handler.py
import os
import csv
import math
import uuid
import logging
from datetime import datetime, timezone
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('type', 'value')
OPTIONAL_COLUMNS = ('unit', 'station_id', 'location_name', 'latitude', 'longitude', 'timestamp')


class FileHandler:
    def __init__(self, upload_folder):
        self.upload_folder = upload_folder
        self.allowed_extensions = {'csv'}

    def is_allowed_file(self, filename):
        """Check if file extension is allowed"""
        return '.' in filename and \
               filename.rsplit('.', 1)[1].lower() in self.allowed_extensions

    def save_file(self, file):
        """Save uploaded file and return file path"""
        if not file or not self.is_allowed_file(file.filename):
            raise ValueError("Invalid file type")

        # Generate unique filename
        filename = secure_filename(file.filename)
        unique_filename = f"{uuid.uuid4()}_{filename}"
        file_path = os.path.join(self.upload_folder, unique_filename)

        os.makedirs(self.upload_folder, exist_ok=True)

        file.save(file_path)
        return file_path

    def parse_readings(self, file_path):
        """Read sensor readings from a CSV file.

        Returns (rows, errors). Each row is a dict ready for Reading; each
        error names the CSV line it came from. Rows with errors are skipped.
        """
        rows = []
        errors = []

        with open(file_path, newline='', encoding='utf-8-sig') as handle:
            reader = csv.DictReader(handle)
            try:
                columns = [c.strip().lower() for c in (reader.fieldnames or [])]
                missing = [c for c in REQUIRED_COLUMNS if c not in columns]
                if missing:
                    raise ValueError(f"Missing required columns: {', '.join(missing)}")

                # Header is line 1
                for line_number, raw in enumerate(reader, start=2):
                    record = {
                        key.strip().lower(): (value or '').strip()
                        for key, value in raw.items()
                        if key is not None
                    }
                    try:
                        rows.append(self._parse_row(record))
                    except ValueError as e:
                        errors.append({'line': line_number, 'error': str(e)})
            except csv.Error as e:
                raise ValueError(f"Malformed CSV near line {reader.line_num}: {e}")

        return rows, errors

    def _parse_row(self, record):
        parameter = record.get('type')
        if not parameter:
            raise ValueError('Missing parameter type')

        try:
            value = float(record.get('value'))
        except (TypeError, ValueError):
            raise ValueError(f"Invalid value: {record.get('value')!r}")
        if not math.isfinite(value):
            raise ValueError(f"Invalid value: {record.get('value')!r}")

        row = {'type': parameter, 'value': value}

        for column in ('unit', 'station_id', 'location_name'):
            if record.get(column):
                row[column] = record[column]

        for column in ('latitude', 'longitude'):
            if record.get(column):
                try:
                    row[column] = float(record[column])
                except ValueError:
                    raise ValueError(f"Invalid {column}: {record[column]!r}")

        if not -90 <= row.get('latitude', 0) <= 90:
            raise ValueError(f"Latitude out of range: {row['latitude']}")
        if not -180 <= row.get('longitude', 0) <= 180:
            raise ValueError(f"Longitude out of range: {row['longitude']}")

        if record.get('timestamp'):
            try:
                timestamp = datetime.fromisoformat(record['timestamp'].replace('Z', '+00:00'))
            except ValueError:
                raise ValueError(f"Invalid timestamp: {record['timestamp']!r}")
            if timestamp.tzinfo:
                timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)
            row['timestamp'] = timestamp

        return row

    def cleanup_file(self, file_path):
        """Delete uploaded file"""
        try:
            if os.path.exists(file_path):
                os.remove(file_path)
        except OSError as e:
            logger.warning("Failed to cleanup file %s: %s", file_path, e)
