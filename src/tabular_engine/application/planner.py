"""Logical plan builder.

Turns a parsed ``Query`` into a logical plan, validating it against the
schema of the table it reads. The construction order is fixed::

    Scan -> Filter -> Aggregate -> Project -> Sort -> Limit

Filter, Aggregate, Sort and Limit are present only when the corresponding
clause exists; Project is always present and defines the result columns.
"""

from __future__ import annotations

from tabular_engine.adapters.inbound.sql_parser import OrderByItem, Query, SelectItem
from tabular_engine.domain.entities import (
    Aggregate,
    AggregateExpr,
    ColumnExpr,
    Filter,
    Limit,
    LogicalPlan,
    Project,
    ProjectItem,
    Scan,
    Schema,
    Sort,
    SortKey,
    StarExpr,
)
from tabular_engine.domain.errors import PlanError, QueryTypeError, SchemaError
from tabular_engine.domain.services import check_predicate
from tabular_engine.domain.value_objects import ValueType


class PlanBuilder:
    """Builds validated logical plans from query ASTs.

    Example:
        >>> query = SQLParser().parse("SELECT category, SUM(sales) FROM data GROUP BY category")
        >>> print(PlanBuilder().build(query, table.schema))
        Project(category, SUM(sales))
          -> Aggregate(group=[category], agg=[SUM(sales)])
            -> Scan(data)
    """

    def build(
        self, query: Query, schema: Schema, table_name: str | None = None
    ) -> LogicalPlan:
        """Build the plan for a query.

        Args:
            query: Parsed query.
            schema: Schema of the table named in the FROM clause.
            table_name: Name recorded on the Scan; defaults to the FROM name.

        Returns:
            The root of the plan tree.

        Raises:
            SchemaError: If a referenced column does not exist.
            QueryTypeError: If the WHERE predicate compares incompatible
                types, SUM/AVG/MIN/MAX is applied to a non-numeric column,
                or a result is ordered by a Boolean column.
            PlanError: If the query is structurally invalid.
        """
        plan: LogicalPlan = Scan(
            table_name=table_name or query.table_name, table_schema=schema
        )

        if query.where is not None:
            types = {name: schema.type_of(name) for name in sorted(query.where.columns())}
            check_predicate(query.where, types)
            plan = Filter(input=plan, predicate=query.where)

        if query.has_aggregates or query.group_by:
            plan = self._build_aggregate(query, schema, plan)

        plan = Project(input=plan, items=self._project_items(query, plan.output_schema))

        if query.order_by:
            output = plan.output_schema
            keys = tuple(
                self._sort_key(item, query.select_items, output)
                for item in query.order_by
            )
            plan = Sort(input=plan, keys=keys)

        if query.limit is not None:
            plan = Limit(input=plan, count=query.limit)

        return plan

    def _build_aggregate(
        self, query: Query, schema: Schema, plan: LogicalPlan
    ) -> Aggregate:
        group_keys = tuple(dict.fromkeys(query.group_by))
        for key in group_keys:
            schema.index_of(key)

        aggregates: list[AggregateExpr] = []
        for item in query.select_items:
            expr = item.expr
            if isinstance(expr, StarExpr):
                raise PlanError("'*' cannot be selected in an aggregate query")
            if isinstance(expr, ColumnExpr):
                schema.index_of(expr.name)
                if expr.name not in group_keys:
                    raise PlanError(
                        f"Column '{expr.name}' must appear in GROUP BY "
                        "or be used in an aggregate function"
                    )
            elif isinstance(expr, AggregateExpr):
                self._check_aggregate(expr, schema)
                if expr not in aggregates:
                    aggregates.append(expr)

        return Aggregate(input=plan, group_keys=group_keys, aggregates=tuple(aggregates))

    def _check_aggregate(self, agg: AggregateExpr, schema: Schema) -> None:
        if agg.arg is None:
            return
        arg_type = schema.type_of(agg.arg.name)
        # An all-null column has no type yet and aggregates to Null
        if agg.func.requires_numeric and not (
            arg_type.is_numeric or arg_type is ValueType.NULL
        ):
            raise QueryTypeError(
                f"{agg.func.value} requires a numeric column, "
                f"'{agg.arg.name}' is {arg_type.value}"
            )

    def _project_items(
        self, query: Query, source: Schema
    ) -> tuple[ProjectItem, ...]:
        items: list[ProjectItem] = []
        for item in query.select_items:
            expr = item.expr
            if isinstance(expr, StarExpr):
                items.extend(ProjectItem(name, name) for name in source.names)
                continue
            if isinstance(expr, ColumnExpr):
                source.index_of(expr.name)
            items.append(ProjectItem(str(expr), item.output_name))
        return tuple(items)

    def _sort_key(
        self,
        item: OrderByItem,
        select_items: tuple[SelectItem, ...],
        output: Schema,
    ) -> SortKey:
        name = self._resolve_order_column(item, select_items, output)
        if output.type_of(name) is ValueType.BOOLEAN:
            raise QueryTypeError(f"Cannot order by BOOLEAN column '{name}'")
        return SortKey(column=name, ascending=item.ascending)

    def _resolve_order_column(
        self,
        item: OrderByItem,
        select_items: tuple[SelectItem, ...],
        output: Schema,
    ) -> str:
        expr = item.expr
        if isinstance(expr, ColumnExpr) and expr.name in output:
            return expr.name
        # ORDER BY may name the underlying column or aggregate of an aliased item
        for select_item in select_items:
            if select_item.expr == expr:
                return select_item.output_name
        raise SchemaError(
            str(expr), f"ORDER BY '{expr}' does not match any selected column"
        )
