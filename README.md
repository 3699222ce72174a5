# y86sim

Tools for the Y86-64 instruction set, a small 64-bit teaching architecture
modelled on x86-64:

- **`yas`** – a two-pass assembler that turns `.ys` assembly source into
  `.yo` object listings.
- **`yis`** – an instruction-set simulator that loads a `.yo` file, runs it
  and reports what changed in the registers and memory.
- A library with the pieces for building simulators: memory and register
  files, the instruction table, ALU and condition-code logic, pipeline
  registers, a five-stage pipelined processor driven by pluggable control
  functions, and a generator that writes C functions from HCL expression
  trees.

## Installation

```
pip install .
```

The package has no runtime dependencies. To run the tests:

```
pip install .[test]
pytest
```

## Assembling

```
yas prog.ys
```

writes `prog.yo` next to the source. Each line of the listing shows the
address, the encoded bytes and the source line:

```
0x000: 30f40002000000000000 |     irmovq stack, %rsp
```

With `-V` the assembler writes a Verilog memory initialisation to standard
output instead of a `.yo` file; `-V8` writes it for 8-way banked memory
(any other blocking factor is refused).

```
yas -V prog.ys
yas -V8 prog.ys
```

Errors are printed to standard error with the line number and the line
itself, and the command exits with status 1. Labels, `.pos`, `.align`,
`.byte`, `.word`, `.long` and `.quad` are supported; `#` starts a comment
to the end of the line and `/* ... */` comments may span lines.

## Simulating

```
yis prog.yo
yis prog.yo 500
```

The optional second argument limits the number of instructions executed
(10000 by default). When it stops, `yis` prints the number of steps, the
final program counter, the status (`AOK`, `HLT`, `ADR` or `INS`) and the
condition codes, followed by every register and every memory word that
changed.

## Using the library

Assemble and run a program in Python:

```python
from y86sim.assembler import assemble
from y86sim.isa import Register
from y86sim.machine import MachineState, run

source = """\
    irmovq $5, %rax
    irmovq $7, %rbx
    addq %rbx, %rax
    halt
"""
state = MachineState()
state.mem.load(assemble(source))
steps, status = run(state, 100)
print(steps, status.name, state.regs.get(Register.RAX))   # 4 HLT 12
```

`y86sim.yis.simulate(lines, max_steps, out)` does the same for object text
and prints the report that `yis` prints; it raises `LoadError` when the
object code cannot be loaded or holds no bytes. `assemble` raises
`AssemblyError`, whose `errors` list holds the error reports.

| Module               | Contents                                                              |
|----------------------|-----------------------------------------------------------------------|
| `y86sim.isa`         | registers, instruction table, ALU, condition codes, status codes     |
| `y86sim.memory`      | `Memory`, `RegisterFile`, `.yo` loading and `LoadError`              |
| `y86sim.machine`     | `MachineState` with single-step execution, and `run`                 |
| `y86sim.assembler`   | `Assembler`, `tokenize_line`, `assemble` and the `yas` command       |
| `y86sim.yis`         | `simulate` and the `yis` command                                      |
| `y86sim.stages`      | contents of the pipeline registers and their bubble values           |
| `y86sim.pipeline`    | `PipeRegister`, `PipeOp`, `pipe_cntl`, `wstring` and `wprint`        |
| `y86sim.control`     | `Signals` and `ControlLogic`, the pluggable control functions        |
| `y86sim.psim`        | `PipelineSimulator` and `run_tty`                                     |
| `y86sim.report`      | cycle-by-cycle trace and CPI line formatting                          |
| `y86sim.outgen`      | `OutputGenerator`, column-limited code output                         |
| `y86sim.hcl`         | HCL expression nodes and `HclGenerator`, which writes C functions    |
| `y86sim.examples`    | reference `sum_list`, `rsum_list`, `copy_block` and `ncopy`           |

### The pipelined simulator

`PipelineSimulator` models the fetch, decode, execute, memory and
write-back stages, forwarding and stall/bubble control, but the processor's
control logic is supplied by the caller: `ControlLogic` takes a mapping from
every name in `y86sim.control.CONTROL_SIGNALS` (such as `f_pc`, `d_srcA`,
`alufun`, `F_stall`) to a function of the current `Signals`, and raises
`ValueError` if any is missing. `run_tty` loads object code, runs it, prints
the changes and the CPI, and with `check=True` compares the result with the
instruction-level model, printing `ISA Check Succeeds` or
`ISA Check Fails`.

## What the package does not do

- It has no parser for HCL text and no command that turns an HCL file into
  C. `HclGenerator` writes C from expression trees built in Python with
  `make_var`, `make_num`, `make_and` and the other constructors.
- It ships no processor description: there is no ready-made set of control
  functions, and so no command that runs the pipelined or sequential
  processor from the shell.
- There is no graphical interface; all output is text.

## The Y86-64 machine

- Fifteen 64-bit registers, `%rax` through `%r14`; register ID `0xF` means
  "no register".
- Three condition codes, zero, sign and overflow; the initial value is
  `Z=1 S=0 O=0`.
- Instructions: `halt`, `nop`, `rrmovq` and the `cmovXX` family, `irmovq`,
  `rmmovq`, `mrmovq`, `addq`, `subq`, `andq`, `xorq`, `jmp` and the `jXX`
  family, `call`, `ret`, `pushq`, `popq` and `iaddq`.
- Memory is 8 KiB and little-endian.