"""
Tests for the symbolic interpreter.

Functions are written with FunctionBuilder in the shape the compiler emits
them, then summarized with abstract().
"""

from shapecheck.config import AnalysisConfig
from shapecheck.constraints.constraint import (
    TOP,
    CallConstraint,
    ExprConstraint,
    Frame,
    Origin,
)
from shapecheck.constraints.expressions import (
    Add,
    BoolEq,
    BoolVar,
    DimVar,
    Element,
    Hole,
    IntEq,
    IntGe,
    IntGt,
    IntLiteral,
    IntLt,
    Length,
    ListEq,
    ListLiteral,
    Not,
    Or,
    ShapeVar,
    TupleExpr,
    TRUE,
    complexity,
)
from shapecheck.diagnostics import AnalysisWarning, Diagnostics
from shapecheck.frontend.ir import (
    ARRAY_LITERAL_BUILTIN,
    Function,
    NamedType,
    Op,
    StructField,
    SwitchCase,
    SwitchEnum,
    TupleType,
    UnknownTerminator,
)
from shapecheck.semantics.array_literals import normalize_array_literals
from shapecheck.semantics.interpreter import abstract

from ir_fixtures import BOOL, INT, TENSOR, FunctionBuilder, loc


def lit(value):
    return IntLiteral(value)


def expr_constraints(summary):
    return [c for c in summary.constraints if isinstance(c, ExprConstraint)]


def asserted(summary):
    return [c for c in expr_constraints(summary) if c.origin is Origin.ASSERTED]


def summarize(function, **kwargs):
    diagnostics = Diagnostics()
    with diagnostics.recording() as warnings:
        summary = abstract(function, diagnostics=diagnostics, **kwargs)
    return summary, warnings


class TestStraightLine:
    """Single-block functions."""

    def test_declaration_has_no_summary(self):
        summary, warnings = summarize(Function("external"))
        assert summary is None
        assert warnings == []

    def test_dimension_assertion(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        dim = fb.dim(fb.shape_of(x), 0, line=3)
        fb.assert_(fb.int_op("Int.>", dim, fb.int_(3)), line=3)
        fb.ret()
        summary, warnings = summarize(fb.build())

        s0 = ShapeVar(0)
        assert summary.arg_exprs == [s0]
        assert summary.ret_expr is None
        assert summary.constraints == [
            ExprConstraint(IntGt(Length(s0), lit(0)), TRUE, Origin.IMPLIED, Frame(loc(3), TOP)),
            ExprConstraint(IntGt(Element(0, s0), lit(3)), TRUE, Origin.ASSERTED, Frame(loc(3), TOP)),
        ]
        assert warnings == []

    def test_negative_subscript_requires_rank(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        fb.dim(fb.shape_of(x), -2)
        fb.ret()
        summary, _ = summarize(fb.build())
        assert [c.expr for c in summary.constraints] == [IntGe(Length(ShapeVar(0)), lit(2))]

    def test_rank_assertion(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        fb.assert_(fb.int_op("Int.==", fb.rank_of(x), fb.int_(2)), line=5)
        fb.ret()
        summary, _ = summarize(fb.build())
        assert [c.expr for c in asserted(summary)] == [IntEq(Length(ShapeVar(0)), lit(2))]

    def test_shape_literal_equality(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        literal = fb.shape_literal(fb.int_(2), fb.int_(3), line=4)
        fb.assert_(fb.shapes_equal(fb.shape_of(x), literal), line=4)
        fb.ret()
        summary, warnings = summarize(fb.build())
        assert [c.expr for c in expr_constraints(summary)] == [
            ListEq(ShapeVar(0), ListLiteral((lit(2), lit(3))))]
        assert warnings == []

    def test_shape_literal_with_symbolic_dimension(self):
        fb = FunctionBuilder("f", [TENSOR, INT])
        x, n = fb.arguments
        literal = fb.shape_literal(n, fb.int_(3))
        fb.assert_(fb.shapes_equal(fb.shape_of(x), literal))
        fb.ret()
        summary, _ = summarize(fb.build())
        assert [c.expr for c in asserted(summary)] == [
            ListEq(ShapeVar(0), ListLiteral((DimVar(1), lit(3))))]

    def test_negative_literal_dimension_discarded(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        literal = fb.shape_literal(fb.int_(-1))
        fb.assert_(fb.shapes_equal(fb.shape_of(x), literal), line=6)
        fb.ret()
        summary, warnings = summarize(fb.build())
        assert expr_constraints(summary) == []
        assert [w.issue for w in warnings] == [
            "Discarded a malformed constraint: Negative dimension -1 in a shape literal",
            "Failed to find the asserted condition",
        ]
        assert warnings[1].location == loc(6)

    def test_hole(self):
        fb = FunctionBuilder("f")
        fb.assert_(fb.int_op("Int.==", fb.hole(7), fb.int_(3)))
        fb.ret()
        summary, _ = summarize(fb.build())
        assert [c.expr for c in asserted(summary)] == [IntEq(Hole(loc(7)), lit(3))]

    def test_unclosed_coroutine_keeps_next_instruction(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        condition = fb.int_op("Int.==", fb.rank_of(x), fb.int_(2))
        accessor = fb.function_ref("TensorShape.subscript.read")
        fb.emit(Op.BEGIN_APPLY, [accessor, fb.int_(0), fb.shape_of(x)],
                [INT, NamedType("Builtin.Token")])
        fb.assert_(condition, line=5)
        fb.ret()
        summary, warnings = summarize(fb.build())
        assert [c.expr for c in asserted(summary)] == [IntEq(Length(ShapeVar(0)), lit(2))]
        assert warnings == []

    def test_returned_shape(self):
        fb = FunctionBuilder("f", [TENSOR], result_type=NamedType("TensorShape"))
        (x,) = fb.arguments
        fb.ret(fb.shape_of(x), line=2)
        summary, _ = summarize(fb.build())
        # The result is allocated before the arguments
        assert summary.ret_expr == ShapeVar(0)
        assert summary.arg_exprs == [ShapeVar(1)]
        assert summary.constraints == [
            ExprConstraint(ListEq(ShapeVar(0), ShapeVar(1)), TRUE, Origin.IMPLIED, Frame(loc(2), TOP))]


class TestCalls:
    """Calls to user functions and closures."""

    def test_call_recorded(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        fb.call("g", x, fb.int_(2), result_type=TENSOR, line=8)
        fb.ret()
        summary, _ = summarize(fb.build())
        assert summary.constraints == [
            CallConstraint("g", (ShapeVar(0), lit(2)), ShapeVar(1), TRUE, Frame(loc(8), TOP))]

    def test_closure_assertion(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        fb.assert_closure("closure #1 in f", x, line=9)
        fb.ret()
        summary, warnings = summarize(fb.build())
        condition = BoolVar(1)
        assert summary.constraints == [
            CallConstraint("closure #1 in f", (ShapeVar(0),), condition, TRUE, Frame(loc(9), TOP)),
            ExprConstraint(condition, TRUE, Origin.ASSERTED, Frame(loc(9), TOP)),
        ]
        assert warnings == []

    def test_builtin_aliases(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        fb.call("myAssert", fb.int_op("Int.<", fb.rank_of(x), fb.int_(5)), line=2)
        fb.ret()
        config = AnalysisConfig(builtin_aliases={"myAssert": "assert"})
        summary, _ = summarize(fb.build(), config=config)
        assert [c.expr for c in asserted(summary)] == [IntLt(Length(ShapeVar(0)), lit(5))]

    def test_unknown_condition_warns(self):
        fb = FunctionBuilder("f", [NamedType("Opaque")])
        (opaque,) = fb.arguments
        fb.assert_(opaque, line=4)
        fb.ret()
        summary, warnings = summarize(fb.build())
        assert summary.constraints == []
        assert warnings == [AnalysisWarning("Failed to find the asserted condition", loc(4))]


class TestValues:
    """Builtin operators, tuples and structs."""

    def test_builtin_operators(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        rank = fb.rank_of(x)
        one = fb.int_(1)
        pair = fb.emit(Op.BUILTIN, [rank, one], [TupleType((INT, BOOL))],
                       name="sadd_with_overflow_Int64")[0]
        total = fb.emit(Op.TUPLE_EXTRACT, [pair], [INT], index=0)[0]
        boxed = fb.emit(Op.STRUCT, [total], [INT], type="Int")[0]
        unboxed = fb.emit(Op.STRUCT_EXTRACT, [boxed], [INT], struct="Int", field="_value")[0]
        condition = fb.emit(Op.BUILTIN, [unboxed, fb.int_(3)], [BOOL], name="cmp_eq_Int64")[0]
        fb.assert_(condition)
        fb.ret()
        summary, _ = summarize(fb.build())
        assert [c.expr for c in asserted(summary)] == [
            IntEq(Add(Length(ShapeVar(0)), lit(1)), lit(3))]

    def test_not_equal_operator(self):
        fb = FunctionBuilder("f", [INT])
        (n,) = fb.arguments
        condition = fb.emit(Op.BUILTIN, [n, fb.int_(0)], [BOOL], name="cmp_ne_Int64")[0]
        fb.assert_(condition)
        fb.ret()
        summary, _ = summarize(fb.build())
        assert [c.expr for c in asserted(summary)] == [Not(IntEq(DimVar(0), lit(0)))]

    def test_user_struct_fields(self):
        pair = NamedType("Pair")
        structs = {"Pair": [StructField("tensor", TENSOR), StructField("rank", INT)]}
        fb = FunctionBuilder("f", [pair])
        (value,) = fb.arguments
        tensor = fb.emit(Op.STRUCT_EXTRACT, [value], [TENSOR], struct="Pair", field="tensor")[0]
        rank = fb.emit(Op.STRUCT_EXTRACT, [value], [INT], struct="Pair", field="rank")[0]
        fb.assert_(fb.int_op("Int.==", fb.rank_of(tensor), rank))
        fb.ret()
        summary, _ = summarize(fb.build(), type_environment=structs)
        assert summary.arg_exprs == [TupleExpr((ShapeVar(0), DimVar(1)))]
        assert [c.expr for c in asserted(summary)] == [IntEq(Length(ShapeVar(0)), DimVar(1))]


class TestControlFlow:
    """Path conditions, block arguments and loops."""

    def test_conditional_assertion(self):
        fb = FunctionBuilder("f", [TENSOR, BOOL])
        x, flag = fb.arguments
        fb.cond_br(flag, "bb1", "bb2")
        fb.block("bb1")
        fb.assert_(fb.int_op("Int.==", fb.rank_of(x), fb.int_(2)), line=3)
        fb.br("bb3")
        fb.block("bb2")
        fb.br("bb3")
        fb.block("bb3")
        fb.ret()
        summary, _ = summarize(fb.build())
        assert summary.constraints == [
            ExprConstraint(IntEq(Length(ShapeVar(0)), lit(2)), BoolVar(1), Origin.ASSERTED,
                           Frame(loc(3), TOP))]

    def test_block_arguments_bound_per_edge(self):
        fb = FunctionBuilder("f", [TENSOR, BOOL], result_type=INT)
        x, flag = fb.arguments
        fb.cond_br(flag, "bb1", "bb2")
        fb.block("bb1")
        fb.br("bb3", fb.rank_of(x))
        fb.block("bb2")
        fb.br("bb3", fb.int_(2))
        (merged,) = fb.block("bb3", [INT])
        fb.ret(merged)
        summary, _ = summarize(fb.build())

        ret, s, flag_var, phi = DimVar(0), ShapeVar(1), BoolVar(2), DimVar(3)
        reached = BoolVar(4)
        assert summary.ret_expr == ret
        assert summary.arg_exprs == [s, flag_var]
        assert [(c.expr, c.assuming) for c in summary.constraints] == [
            (IntEq(phi, Length(s)), flag_var),
            (IntEq(phi, lit(2)), Not(flag_var)),
            (BoolEq(reached, Or((flag_var, Not(flag_var)))), TRUE),
            (IntEq(ret, phi), reached),
        ]
        assert all(c.origin is Origin.IMPLIED for c in summary.constraints)

    def test_switch_cases(self):
        fb = FunctionBuilder("f", [TENSOR, NamedType("Direction")])
        x, direction = fb.arguments
        fb.switch(direction, "bb1", "bb2", "bb3")
        for position, label in enumerate(["bb1", "bb2", "bb3"]):
            fb.block(label)
            fb.assert_(fb.int_op("Int.==", fb.rank_of(x), fb.int_(position)), line=10 + position)
            fb.ret()
        summary, _ = summarize(fb.build())

        discriminator = DimVar(1)
        first = IntEq(discriminator, lit(0))
        second = IntEq(discriminator, lit(1))
        assert [c.assuming for c in asserted(summary)] == [
            first, second, Not(Or((first, second)))]

    def test_default_case_excludes_all_other_cases(self):
        fb = FunctionBuilder("f", [TENSOR, NamedType("Direction")])
        x, direction = fb.arguments
        labels = ["bb1", "bb2", "bb3"]
        fb._terminate(SwitchEnum(direction, (SwitchCase("case0", "bb1"),
                                             SwitchCase(None, "bb2"),
                                             SwitchCase("case2", "bb3"))))
        for position, label in enumerate(labels):
            fb.block(label)
            fb.assert_(fb.int_op("Int.==", fb.rank_of(x), fb.int_(position)), line=10 + position)
            fb.ret()
        summary, _ = summarize(fb.build())

        discriminator = DimVar(1)
        first = IntEq(discriminator, lit(0))
        third = IntEq(discriminator, lit(2))
        assert [c.assuming for c in asserted(summary)] == [
            first, Not(Or((first, third))), third]

    def test_join_conditions_stay_small(self):
        branches = 20
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        for k in range(branches):
            fb.cond_br(fb.int_op("Int.>", fb.rank_of(x), fb.int_(k)), f"then{k}", f"else{k}")
            fb.block(f"then{k}")
            fb.br(f"join{k}")
            fb.block(f"else{k}")
            fb.br(f"join{k}")
            fb.block(f"join{k}")
        fb.assert_(fb.int_op("Int.==", fb.rank_of(x), fb.int_(3)), line=30)
        fb.ret()
        summary, warnings = summarize(fb.build())

        assert warnings == []
        # One definition per join and the assertion
        assert len(summary.constraints) == branches + 1
        assert max(complexity(c.expr) + complexity(c.assuming)
                   for c in summary.constraints) <= 20
        (check,) = asserted(summary)
        assert isinstance(check.assuming, BoolVar)

    def test_loop_is_analyzed(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        fb.br("bb1", fb.int_(0))
        (i,) = fb.block("bb1", [INT])
        fb.cond_br(fb.int_op("Int.<", i, fb.rank_of(x)), "bb2", "bb3")
        fb.block("bb2")
        fb.br("bb1", fb.int_op("Int.+", i, fb.int_(1)))
        fb.block("bb3")
        dim = fb.dim(fb.shape_of(x), 0)
        fb.assert_(fb.int_op("Int.==", dim, fb.int_(3)), line=20)
        fb.ret()
        summary, warnings = summarize(fb.build())

        assert summary is not None
        assert warnings == []
        checks = [c for c in asserted(summary) if c.location == loc(20)]
        assert len(checks) == 1
        reached = checks[0].assuming
        assert isinstance(reached, BoolVar)
        (definition,) = [c.expr for c in expr_constraints(summary)
                         if isinstance(c.expr, BoolEq) and c.expr.lhs == reached]
        # Reached from the first iteration and from the final header
        assert isinstance(definition.rhs, Or)
        assert len(definition.rhs.exprs) == 2

    def test_constants_survive_loops(self):
        fb = FunctionBuilder("f", [TENSOR])
        (x,) = fb.arguments
        index = fb.int_(0)
        two = fb.int_(2)
        fb.br("bb1", fb.int_(0))
        (i,) = fb.block("bb1", [INT])
        fb.cond_br(fb.int_op("Int.<", i, fb.rank_of(x)), "bb2", "bb3")
        fb.block("bb2")
        fb.br("bb1", fb.int_op("Int.+", i, fb.int_(1)))
        fb.block("bb3")
        dim = fb.dim(fb.shape_of(x), index)
        fb.assert_(fb.int_op("Int.==", dim, two), line=20)
        fb.ret()
        summary, warnings = summarize(fb.build())

        assert warnings == []
        checks = [c for c in asserted(summary) if c.location == loc(20)]
        assert [c.expr for c in checks] == [IntEq(Element(0, ShapeVar(0)), lit(2))]

    def test_unknown_terminator(self):
        fb = FunctionBuilder("f", [TENSOR])
        fb.current.terminator = UnknownTerminator("yield %3")
        fb.current.terminator_location = loc(6)
        summary, warnings = summarize(fb.build())
        assert summary is None
        assert warnings == [AnalysisWarning("Unsupported terminator: yield %3", loc(6))]

    def test_irreducible_control_flow(self):
        fb = FunctionBuilder("f", [BOOL])
        (flag,) = fb.arguments
        fb.cond_br(flag, "bb1", "bb2")
        fb.block("bb1")
        fb.br("bb2")
        fb.block("bb2")
        fb.br("bb1")
        summary, warnings = summarize(fb.build())
        assert summary is None
        assert len(warnings) == 1
        assert "too complex" in warnings[0].issue


class TestArrayLiterals:
    """Recognition of the array-literal allocation idiom."""

    def test_marker_inserted_after_last_store(self):
        fb = FunctionBuilder("f")
        two, three = fb.int_(2), fb.int_(3)
        array = fb.array_literal(two, three)
        instructions = normalize_array_literals(fb.current.instructions)
        assert len(instructions) == len(fb.current.instructions) + 1
        marker = instructions[-1]
        assert instructions[-2].op is Op.STORE
        assert marker.op is Op.BUILTIN
        assert marker.attributes["name"] == ARRAY_LITERAL_BUILTIN
        assert [o.value for o in marker.operands] == [array.value, two.value, three.value]

    def test_unrelated_code_untouched(self):
        fb = FunctionBuilder("f", [TENSOR])
        fb.shape_of(fb.arguments[0])
        assert normalize_array_literals(fb.current.instructions) is fb.current.instructions

    def test_missing_store_not_recognized(self):
        fb = FunctionBuilder("f")
        fb.array_literal(fb.int_(2), fb.int_(3))
        # Drop the last store
        del fb.current.instructions[-1]
        instructions = normalize_array_literals(fb.current.instructions)
        assert all(i.attributes.get("name") != ARRAY_LITERAL_BUILTIN for i in instructions)
