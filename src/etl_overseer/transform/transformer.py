import logging

from etl_overseer.errors import ConfigurationError

TRANSFORM_STEPS = (
    'rename_columns',
    'keep_columns',
    'convert_blank_to_null',
    'upper',
    'convert_yn_to_boolean',
)

#Record level transforms applied between ingestion and load. Steps rewrite fields, they never drop records.
class Transform:
    def __init__(self, table_conf=None, name=None):

        self.table_conf = table_conf or {}
        self.name = name
        self.logger = logging.getLogger("etl.transform")

        self.transform_order = self.table_conf.get('transformation_order') or []
        if not isinstance(self.transform_order, list):
            raise ConfigurationError(
                f"transformation_order must be a list of steps, got {type(self.transform_order).__name__}",
                action=name,
            )
        unknown = [step for step in self.transform_order if step not in TRANSFORM_STEPS]
        if unknown:
            raise ConfigurationError(
                f"Unknown transformation step(s) {', '.join(unknown)}. Available: {', '.join(TRANSFORM_STEPS)}",
                action=name,
            )
        self._validate_arguments()

    def apply_transforms(self, records):
        table_conf = self.table_conf

        for step in self.transform_order:
            if step not in table_conf:
                continue

            if step == 'rename_columns':
                renames = table_conf['rename_columns']
                records = [{renames.get(k, k): v for k, v in record.items()} for record in records]

            elif step == 'keep_columns':
                # Mapping form mirrors a column: type listing, only the names matter here
                keep = list(table_conf['keep_columns'])
                records = [{k: record[k] for k in keep if k in record} for record in records]

            elif step == 'convert_blank_to_null':
                columns = table_conf['convert_blank_to_null']
                records = [
                    {k: (None if self._selected(k, columns) and isinstance(v, str) and v.strip() == "" else v)
                     for k, v in record.items()}
                    for record in records
                ]

            elif step == 'upper':
                columns = table_conf['upper']
                records = [
                    {k: (v.strip().upper() if self._selected(k, columns) and isinstance(v, str) else v) for k, v in record.items()}
                    for record in records
                ]

            elif step == 'convert_yn_to_boolean':
                columns = table_conf['convert_yn_to_boolean']
                records = [
                    {k: (self._yn(v) if self._selected(k, columns) else v) for k, v in record.items()}
                    for record in records
                ]

            self.logger.debug(f"Applied {step} to {len(records)} records")

        return records

    def _validate_arguments(self):
        # Checked before any record is read
        for step in self.transform_order:
            if step not in self.table_conf:
                continue
            value = self.table_conf[step]
            if step == 'rename_columns':
                valid = isinstance(value, dict)
                expected = "a mapping of old to new column names"
            elif step == 'keep_columns':
                valid = isinstance(value, (list, dict))
                expected = "a list or mapping of column names"
            else:
                valid = value is True or isinstance(value, list)
                expected = "a list of column names or true"
            if not valid:
                raise ConfigurationError(
                    f"Transformation step {step} expects {expected}, got {value!r}",
                    action=self.name,
                )

    @staticmethod
    def _selected(column, columns):
        # `true` applies to every string column
        return columns is True or column in columns

    @staticmethod
    def _yn(value):
        if isinstance(value, bool) or value is None:
            return value
        flag = str(value).strip().lower()
        if flag == "y":
            return True
        if flag == "n":
            return False
        return None
