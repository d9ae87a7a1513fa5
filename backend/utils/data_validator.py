import os

SUPPORTED_EXTENSIONS = ('.csv', '.xlsx', '.xlsm', '.xls')


class DataValidator:
    def __init__(self, max_file_size_mb: int = 50):
        self.max_file_size_mb = max_file_size_mb

    def validate(self, file_name: str, content: bytes) -> dict:
        if not file_name:
            return {'valid': False, 'error': 'File name is missing.'}

        ext = os.path.splitext(file_name)[1].lower()
        if ext not in SUPPORTED_EXTENSIONS:
            return {'valid': False, 'error': 'Only CSV and Excel (.xlsx, .xls) files are supported.'}

        if not content:
            return {'valid': False, 'error': 'The file is empty.'}

        size_mb = len(content) / (1024 * 1024)
        if size_mb > self.max_file_size_mb:
            return {'valid': False, 'error': f'File too large ({size_mb:.1f} MB). Max is {self.max_file_size_mb} MB.'}

        return {'valid': True}
