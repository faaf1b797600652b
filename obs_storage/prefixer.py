"""パスプレフィックス処理

論理パスとオブジェクトキーの相互変換。
"""


class PathPrefixer:
    """
    論理パスにプレフィックスを付与・除去する

    使用例:
        prefixer = PathPrefixer("uploads")
        prefixer.prefix_path("a/b.txt")            # "uploads/a/b.txt"
        prefixer.prefix_directory_path("a")        # "uploads/a/"
        prefixer.strip_prefix("uploads/a/b.txt")   # "a/b.txt"
    """

    def __init__(self, prefix: str = '', separator: str = '/'):
        self.separator = separator
        prefix = prefix.rstrip('\\/')
        self.prefix = prefix + separator if prefix else ''

    def prefix_path(self, path: str) -> str:
        return self.prefix + path.lstrip('\\/')

    def prefix_directory_path(self, path: str) -> str:
        prefixed = self.prefix_path(path.rstrip('\\/'))
        if prefixed == '' or prefixed.endswith(self.separator):
            return prefixed
        return prefixed + self.separator

    def strip_prefix(self, path: str) -> str:
        if self.prefix and path.startswith(self.prefix):
            return path[len(self.prefix):]
        return path

    def strip_directory_prefix(self, path: str) -> str:
        return self.strip_prefix(path).rstrip('\\/')
